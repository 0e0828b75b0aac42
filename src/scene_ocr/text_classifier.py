"""
Text Orientation Classification Module - Stage 2 of OCR Pipeline

Detects and corrects text orientation (0° or 180°).
"""

import logging
from typing import List, Tuple

import cv2
import numpy as np

from .config import ClassifierConfig
from .postprocess import ClsPostProcess
from .results import Angle
from .utils import parallel_map

logger = logging.getLogger(__name__)


class TextClassifier:
    """Text orientation classification module.

    Every crop is classified on its own in a bounded worker pool; the
    verdicts can then be overridden by a score-weighted majority vote.
    """

    def __init__(self, session, config: ClassifierConfig = None):
        """Initialize text classifier.

        Args:
            session: Loaded classification model handle (see OnnxSession)
            config: Classifier configuration (uses defaults if None)
        """
        if config is None:
            config = ClassifierConfig()

        self.config = config
        self.session = session
        self.cls_image_shape = [3, 48, 192]
        self.max_downscale = 3.0

        self.postprocess_op = ClsPostProcess(label_list=['0', '180'])

    def resize_norm_img(self, img: np.ndarray) -> np.ndarray:
        """Resize and normalize image for classification.

        Narrow crops keep their aspect ratio and are padded with gray; wide
        crops are squeezed, and very wide ones are cut to their leading part
        first.

        Args:
            img: Input image (H, W, C)

        Returns:
            Processed image (C, H, W)
        """
        imgC, imgH, imgW = self.cls_image_shape
        h, w = img.shape[:2]
        ratio = imgH / float(h)
        resized_w = int(w * ratio)

        if resized_w < imgW:
            resized = cv2.resize(img, (max(resized_w, 1), imgH))
            resized = cv2.copyMakeBorder(
                resized, 0, 0, 0, imgW - resized.shape[1],
                cv2.BORDER_CONSTANT, value=(114, 114, 114),
            )
        elif resized_w < imgW * self.max_downscale:
            resized = cv2.resize(img, (imgW, imgH))
        else:
            keep_w = max(int(self.max_downscale * imgW / ratio), 1)
            resized = cv2.resize(img[:, :keep_w], (imgW, imgH))

        resized = resized.astype("float32").transpose((2, 0, 1))
        return (resized - 127.5) / 127.5

    def classify_single(self, img: np.ndarray) -> Angle:
        """Classify orientation of one text image."""
        norm_img = self.resize_norm_img(img)[np.newaxis, :]
        prob_out = self.session.infer(norm_img.astype(np.float32))
        return self.postprocess_op(prob_out)[0]

    def classify(self, img_list: List[np.ndarray]) -> List[Angle]:
        """Classify orientation without rotating images.

        Args:
            img_list: List of text image patches

        Returns:
            One Angle per image, in input order
        """
        if not self.config.enable or not img_list:
            return [Angle(False, 0.0) for _ in img_list]

        angles = parallel_map(
            self.classify_single,
            img_list,
            max_workers=self.config.reco_threads,
            default=Angle,
            desc="Orientation of crop",
        )

        if self.config.most_angle:
            angles = self.postprocess_op.vote(angles)

        return angles

    def __call__(
        self,
        img_list: List[np.ndarray],
        auto_rotate: bool = True
    ) -> Tuple[List[np.ndarray], List[Angle]]:
        """Classify and optionally rotate batch of text images.

        Args:
            img_list: List of text image patches (BGR format)
            auto_rotate: If True, rotate images classified as 180°

        Returns:
            Tuple of:
            - List of (possibly rotated) images
            - List of Angle verdicts
        """
        angles = self.classify(img_list)
        img_list = list(img_list)

        if auto_rotate:
            for i, angle in enumerate(angles):
                if angle.is_rotated:
                    img_list[i] = cv2.rotate(img_list[i], cv2.ROTATE_180)

        return img_list, angles

    def __repr__(self):
        return (
            f"TextClassifier(enable={self.config.enable}, "
            f"most_angle={self.config.most_angle}, threads={self.config.reco_threads})"
        )
