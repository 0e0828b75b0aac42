"""
Text Recognition Module - Stage 3 of OCR Pipeline

Recognizes text from oriented text image patches.
"""

import logging
import math
from typing import List, Sequence

import cv2
import numpy as np

from .config import RecognizerConfig
from .postprocess import CTCLabelDecode
from .results import TextLine
from .utils import parallel_map

logger = logging.getLogger(__name__)


class TextRecognizer:
    """Text recognition module.

    Each crop is resized to the model height, run through the recognizer and
    greedily CTC-decoded against the vocabulary.
    """

    def __init__(self, session, keys: Sequence[str], config: RecognizerConfig = None):
        """Initialize text recognizer.

        Args:
            session: Loaded recognition model handle (see OnnxSession)
            keys: Vocabulary, line 0 being the blank slot
            config: Recognizer configuration (uses defaults if None)
        """
        if config is None:
            config = RecognizerConfig()

        self.config = config
        self.session = session
        self.rec_image_height = 48

        self.postprocess_op = CTCLabelDecode(keys)

    def resize_norm_img(self, img: np.ndarray) -> np.ndarray:
        """Resize to the model height, keep aspect ratio, normalize to [-1, 1].

        Returns:
            Processed image (C, H, W)
        """
        imgH = self.rec_image_height
        h, w = img.shape[:2]
        resized_w = max(int(math.ceil(imgH * w / float(h))), 1)

        resized_image = cv2.resize(img, (resized_w, imgH))
        resized_image = resized_image.astype("float32").transpose((2, 0, 1))
        return (resized_image - 127.5) / 127.5

    def recognize_single(self, img: np.ndarray) -> TextLine:
        """Recognize text in a single image."""
        norm_img = self.resize_norm_img(img)[np.newaxis, :]
        preds = self.session.infer(norm_img.astype(np.float32))
        return self.postprocess_op(preds)

    def __call__(self, img_list: List[np.ndarray]) -> List[TextLine]:
        """Recognize text in batch of images.

        Args:
            img_list: List of text image patches (BGR format)

        Returns:
            One TextLine per image, in input order
        """
        return parallel_map(
            self.recognize_single,
            img_list,
            max_workers=self.config.reco_threads,
            default=TextLine,
            desc="Recognition of crop",
        )

    def __repr__(self):
        return (
            f"TextRecognizer(keys={len(self.postprocess_op.character)}, "
            f"threads={self.config.reco_threads})"
        )
