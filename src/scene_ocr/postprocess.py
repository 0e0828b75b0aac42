"""Postprocessing modules for OCR outputs."""

import logging
from pathlib import Path
from typing import List, Sequence, Union

import cv2
import numpy as np

from .errors import ModelLoadError
from .geometry import inflate, masked_mean_score, min_area_quad, unclip_distance
from .results import Angle, TextBox, TextLine

logger = logging.getLogger(__name__)


class DBPostProcess:
    """Post-processing for DB (Differentiable Binarization) text detection.

    Converts a probability map to scored quadrilaterals in source image
    coordinates.
    """

    def __init__(
        self,
        thresh=0.3,
        box_thresh=0.5,
        max_candidates=1000,
        unclip_ratio=2.0,
        padding=50,
    ):
        """Initialize DB post-processor.

        Args:
            thresh: Binarization threshold, compared as-is against the 0-255 map
            box_thresh: Minimum confidence score for boxes
            max_candidates: Maximum number of contours examined
            unclip_ratio: Ratio for expanding text regions
            padding: Border that was added around the source image
        """
        self.thresh = thresh
        self.box_thresh = box_thresh
        self.max_candidates = max_candidates
        self.unclip_ratio = unclip_ratio
        self.padding = padding
        self.min_size = 3

    def __call__(self, pred: np.ndarray, shape_info) -> List[TextBox]:
        """Convert a probability map to text boxes.

        Args:
            pred: Probability map as 0-255 intensities, shape (H, W)
            shape_info: [padded_h, padded_w, ratio_h, ratio_w]

        Returns:
            Scored boxes, top of the image first
        """
        if pred.ndim == 3:
            pred = pred.squeeze()
        if pred.ndim != 2:
            raise ValueError(f"Expected 2D probability map, got shape {pred.shape}")

        bitmap = pred > self.thresh
        return self.boxes_from_bitmap(pred, bitmap, shape_info)

    def boxes_from_bitmap(self, pred, bitmap, shape_info) -> List[TextBox]:
        """Extract quad boxes from binary bitmap."""
        src_h, src_w, ratio_h, ratio_w = shape_info
        src_h, src_w = int(src_h), int(src_w)
        max_x = src_w - 2 * self.padding - 1
        max_y = src_h - 2 * self.padding - 1

        outs = cv2.findContours(
            bitmap.astype(np.uint8) * 255,
            cv2.RETR_EXTERNAL,
            cv2.CHAIN_APPROX_SIMPLE
        )
        if len(outs) == 3:
            contours = outs[1]
        else:
            contours = outs[0]

        num_contours = min(len(contours), self.max_candidates)

        boxes = []
        for index in range(num_contours):
            contour = contours[index]
            if contour.shape[0] <= 2:
                continue

            points, long_side = min_area_quad(contour)
            if long_side < self.min_size:
                continue

            score = masked_mean_score(points, pred)
            if score < self.box_thresh:
                continue

            expanded = inflate(points, unclip_distance(points, self.unclip_ratio))
            if expanded.shape[0] == 0:
                continue
            _, (rect_w, rect_h), _ = cv2.minAreaRect(expanded)
            if rect_w <= 1.0 or rect_h <= 1.0:
                continue

            box, long_side = min_area_quad(expanded)
            if long_side < self.min_size + 2:
                continue

            text_points = tuple(
                (
                    int(np.clip(int(x / ratio_w) - self.padding, 0, max_x)),
                    int(np.clip(int(y / ratio_h) - self.padding, 0, max_y)),
                )
                for x, y in box
            )
            boxes.append(TextBox(points=text_points, score=score))

        # findContours walks the image bottom-up
        boxes.reverse()
        return boxes


class ClsPostProcess:
    """Post-processing for text orientation classification."""

    def __init__(self, label_list=None):
        """Initialize classifier post-processor.

        Args:
            label_list: List of labels like ['0', '180']
        """
        self.label_list = label_list if label_list else ['0', '180']

    def __call__(self, preds: np.ndarray) -> List[Angle]:
        """Convert class probabilities to orientation verdicts.

        Args:
            preds: Prediction probabilities array (N, num_classes)

        Returns:
            One Angle per row
        """
        preds = np.asarray(preds).reshape(len(preds), -1)
        pred_idxs = preds.argmax(axis=1)
        return [
            Angle(
                is_rotated=self.label_list[idx] == '180',
                score=float(preds[i, idx]),
            )
            for i, idx in enumerate(pred_idxs)
        ]

    @staticmethod
    def vote(angles: List[Angle]) -> List[Angle]:
        """Force every verdict to the score-weighted majority.

        A tie resolves to "not rotated". Scores are left untouched.
        """
        rot_weight = sum(a.score for a in angles if a.is_rotated)
        no_rot_weight = sum(a.score for a in angles if not a.is_rotated)
        decision = rot_weight > no_rot_weight
        for angle in angles:
            angle.is_rotated = decision
        return angles


def load_vocabulary(path: Union[str, Path]) -> List[str]:
    """Read a vocabulary manifest.

    One token per line; line 0 occupies the CTC blank slot and is never
    emitted.

    Raises:
        ModelLoadError: If the file is missing, unreadable or empty
    """
    try:
        with open(path, "rb") as fin:
            lines = fin.readlines()
    except OSError as e:
        raise ModelLoadError(f"Failed to load keys {path}: {e}") from e

    keys = [line.decode("utf-8").rstrip("\n").rstrip("\r") for line in lines]
    if not keys:
        raise ModelLoadError(f"Empty vocabulary: {path}")

    logger.debug("Total keys: %d", len(keys))
    return keys


class CTCLabelDecode:
    """Greedy CTC decoding for text recognition."""

    blank_index = 0

    def __init__(self, keys: Sequence[str]):
        """Initialize CTC decoder.

        Args:
            keys: Vocabulary, index 0 being the blank slot
        """
        self.character = list(keys)

    def __call__(self, preds: np.ndarray) -> TextLine:
        """Decode a per-timestep score matrix.

        Args:
            preds: Scores of shape (T, C), or (1, T, C)

        Returns:
            TextLine; empty when C does not match the vocabulary size
        """
        preds = np.asarray(preds)
        if preds.ndim == 3:
            preds = preds[0]

        num_classes = preds.shape[-1] if preds.ndim == 2 else -1
        if num_classes != len(self.character):
            logger.error("Unmatched scores: %d != %d", num_classes, len(self.character))
            return TextLine()

        chars = []
        char_scores = []
        prev_idx = -1
        for row in preds:
            max_idx = int(row.argmax())
            if max_idx != self.blank_index and max_idx != prev_idx:
                token = self.character[max_idx]
                chars.extend(token)
                char_scores.extend([float(row[max_idx])] * len(token))
            prev_idx = max_idx

        # strip surrounding whitespace, keeping scores aligned with characters
        begin, end = 0, len(chars)
        while begin < end and chars[begin].isspace():
            begin += 1
        while end > begin and chars[end - 1].isspace():
            end -= 1

        return TextLine(text="".join(chars[begin:end]), scores=char_scores[begin:end])
