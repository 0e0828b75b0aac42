"""
Text Detection Module - Stage 1 of OCR Pipeline

Detects text regions in images using DBNet architecture.
"""

import logging
from typing import List

import numpy as np

from .config import DetectorConfig
from .postprocess import DBPostProcess
from .preprocess import create_operators, transform
from .results import TextBox

logger = logging.getLogger(__name__)


class TextDetector:
    """Text detection module.

    Runs a single forward pass over the whole (padded, resized) image and
    turns the resulting probability map into scored quadrilaterals.
    """

    def __init__(self, session, config: DetectorConfig = None):
        """Initialize text detector.

        Args:
            session: Loaded detection model handle (see OnnxSession)
            config: Detector configuration (uses defaults if None)
        """
        if config is None:
            config = DetectorConfig()

        self.config = config
        self.session = session

        # Setup preprocessing pipeline
        self.preprocess_ops = create_operators([
            {"PadImage": {"padding": config.padding}},
            {
                "DetResizeForTest": {
                    "limit_side_len": config.max_side_len,
                    "padding": config.padding,
                }
            },
            {
                "NormalizeImage": {
                    "std": [0.229, 0.224, 0.225],
                    "mean": [0.485, 0.456, 0.406],
                    "scale": 1.0 / 255.0,
                }
            },
            {"ToCHWImage": None},
            {"KeepKeys": {"keep_keys": ["image", "shape"]}},
        ])

        # Setup postprocessing
        self.postprocess_op = DBPostProcess(
            thresh=config.bitmap_thresh,
            box_thresh=config.box_thresh,
            max_candidates=1000,
            unclip_ratio=config.unclip_ratio,
            padding=config.padding,
        )

    def preprocess(self, image: np.ndarray) -> tuple:
        """Preprocess single image for detection.

        Args:
            image: Input image as numpy array (H, W, C) in BGR

        Returns:
            Tuple of (processed_image, shape_info) or None if error
        """
        data = {"image": image}
        return transform(data, self.preprocess_ops)

    def __call__(self, image: np.ndarray) -> List[TextBox]:
        """Detect text in a single image.

        Args:
            image: Input image as numpy array (H, W, C) in BGR

        Returns:
            Scored boxes in source image coordinates
        """
        result = self.preprocess(image)
        if result is None:
            return []

        img, shape_info = result
        img = np.expand_dims(img, axis=0).astype(np.float32)

        output = np.asarray(self.session.infer(img))

        # (1, 1, H, W) probabilities -> (H, W) 0-255 intensities
        prob = output.reshape(output.shape[-2], output.shape[-1])
        pred = np.clip(np.rint(prob * 255.0), 0, 255).astype(np.uint8)

        return self.postprocess_op(pred, shape_info)

    def __repr__(self):
        return f"TextDetector(session={self.session!r})"
