"""Preprocessing operations for text detection."""

import logging
from typing import Dict, List, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class PadImage:
    """Surround the image with a constant white border."""

    def __init__(self, padding=50, value=(255, 255, 255), **kwargs):
        self.padding = padding
        self.value = value

    def __call__(self, data: Dict) -> Dict:
        p = self.padding
        if p > 0:
            data['image'] = cv2.copyMakeBorder(
                data['image'], p, p, p, p,
                cv2.BORDER_CONSTANT,
                value=self.value,
            )
        return data


class DetResizeForTest:
    """Resize image for text detection.

    The longer side is scaled to at most ``limit_side_len + 2 * padding``
    and both sides are floored to a multiple of ``stride``.
    """

    def __init__(self, limit_side_len=1024, padding=50, stride=32, **kwargs):
        self.limit_side_len = limit_side_len
        self.padding = padding
        self.stride = stride

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        src_h, src_w = img.shape[:2]

        target_size = min(self.limit_side_len + 2 * self.padding, max(src_h, src_w))
        ratio = float(target_size) / max(src_h, src_w)

        resize_h = max(int(src_h * ratio) // self.stride * self.stride, self.stride)
        resize_w = max(int(src_w * ratio) // self.stride * self.stride, self.stride)

        img = cv2.resize(img, (resize_w, resize_h))

        ratio_h = resize_h / float(src_h)
        ratio_w = resize_w / float(src_w)

        logger.debug(
            "src_w(%d), src_h(%d), dst_w(%d), dst_h(%d), ratio_w(%f), ratio_h(%f)",
            src_w, src_h, resize_w, resize_h, ratio_w, ratio_h,
        )

        data['image'] = img
        data['shape'] = np.array([src_h, src_w, ratio_h, ratio_w])
        return data


class NormalizeImage:
    """Normalize image values."""

    def __init__(self, scale=1.0 / 255.0, mean=(0.485, 0.456, 0.406),
                 std=(0.229, 0.224, 0.225), **kwargs):
        self.scale = np.float32(scale)
        self.mean = np.array(mean).reshape((1, 1, 3)).astype('float32')
        self.std = np.array(std).reshape((1, 1, 3)).astype('float32')

    def __call__(self, data: Dict) -> Dict:
        img = data['image'].astype('float32')
        data['image'] = (img * self.scale - self.mean) / self.std
        return data


class ToCHWImage:
    """Convert image from HWC to CHW format."""

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        data['image'] = img.transpose((2, 0, 1))
        return data


class KeepKeys:
    """Keep only specified keys in data dict."""

    def __init__(self, keep_keys: List[str], **kwargs):
        self.keep_keys = keep_keys

    def __call__(self, data: Dict) -> Tuple:
        return tuple(data[key] for key in self.keep_keys)


OPERATORS = {
    "PadImage": PadImage,
    "DetResizeForTest": DetResizeForTest,
    "NormalizeImage": NormalizeImage,
    "ToCHWImage": ToCHWImage,
    "KeepKeys": KeepKeys,
}


def create_operators(op_param_list: List[Dict]):
    """Create preprocessing operators from config list.

    Args:
        op_param_list: List of dicts like [{"OpName": {params}}]

    Returns:
        List of operator instances
    """
    ops = []
    for operator in op_param_list:
        if not isinstance(operator, dict) or len(operator) != 1:
            raise ValueError(f"Operator entry must be a single-key dict, got {operator!r}")
        op_name = list(operator)[0]
        if op_name not in OPERATORS:
            raise ValueError(f"Unknown operator: {op_name}")
        param = {} if operator[op_name] is None else operator[op_name]
        ops.append(OPERATORS[op_name](**param))
    return ops


def transform(data: Dict, ops: List):
    """Apply preprocessing operators sequentially.

    Args:
        data: Dictionary containing 'image' key
        ops: List of operator instances

    Returns:
        Output of the last operator, or None if any operator gave up
    """
    for op in ops:
        data = op(data)
        if data is None:
            return None
    return data
