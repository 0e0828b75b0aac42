"""Shared fixtures: fake model handles standing in for ONNX Runtime sessions."""

import threading

import numpy as np
import pytest

from scene_ocr.errors import ModelLoadError

# 220x284 image + 50px padding on each side gives a 320x384 working image,
# which is already stride-aligned, so detection ratios are exactly 1.
IMAGE_H, IMAGE_W = 220, 284
PADDING = 50


class FakeDetSession:
    """Returns a probability map with fixed rectangular blobs.

    ``blobs`` are (x0, y0, x1, y1) rectangles in source image coordinates;
    they are shifted by the padding into working coordinates.
    """

    def __init__(self, blobs, value=0.9, padding=PADDING):
        self.blobs = blobs
        self.value = value
        self.padding = padding
        self.inputs = []

    def infer(self, tensor, input_name=None, output_name=None):
        self.inputs.append(tensor)
        _, _, h, w = tensor.shape
        out = np.zeros((1, 1, h, w), dtype=np.float32)
        p = self.padding
        for x0, y0, x1, y1 in self.blobs:
            out[0, 0, y0 + p:y1 + p, x0 + p:x1 + p] = self.value
        return out


class FakeClsSession:
    """Returns the same class probabilities for every crop, or one per call."""

    def __init__(self, probs):
        self.probs = list(probs)
        self.calls = 0
        self._lock = threading.Lock()

    def infer(self, tensor, input_name=None, output_name=None):
        with self._lock:
            idx = self.calls
            self.calls += 1
        row = self.probs[idx % len(self.probs)]
        return np.array([row], dtype=np.float32)


class FakeRecSession:
    """Emits a one-hot score matrix for a fixed class sequence."""

    def __init__(self, classes, num_classes, score=0.9):
        self.classes = classes
        self.num_classes = num_classes
        self.score = score
        self.inputs = []
        self._lock = threading.Lock()

    def infer(self, tensor, input_name=None, output_name=None):
        with self._lock:
            self.inputs.append(tensor)
        return one_hot_scores(self.classes, self.num_classes, self.score)[np.newaxis]


class FailingSession:
    def infer(self, tensor, input_name=None, output_name=None):
        from scene_ocr.errors import InferenceError
        raise InferenceError("boom")


def one_hot_scores(classes, num_classes, score=0.9):
    """Build a (T, C) matrix whose argmax per row follows ``classes``."""
    rest = (1.0 - score) / (num_classes - 1)
    scores = np.full((len(classes), num_classes), rest, dtype=np.float32)
    for t, c in enumerate(classes):
        scores[t, c] = score
    return scores


def make_factory(sessions):
    """Session factory resolving model paths to prepared fakes."""
    def factory(model_path, **kwargs):
        if model_path not in sessions:
            raise ModelLoadError(f"Model not found: {model_path}")
        return sessions[model_path]
    return factory


@pytest.fixture
def keys_file(tmp_path):
    path = tmp_path / "keys.txt"
    path.write_text("#\na\nb\nc\n \n", encoding="utf-8")
    return path


@pytest.fixture
def white_image():
    return np.full((IMAGE_H, IMAGE_W, 3), 255, dtype=np.uint8)


@pytest.fixture
def base_config(keys_file):
    return {
        "det": {"model_path": "det", "padding": PADDING},
        "cls": {"model_path": "cls"},
        "rec": {"model_path": "rec", "keys_path": str(keys_file)},
    }
