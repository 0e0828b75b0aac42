"""
Scene-text OCR with ONNX models

Three independent stages:
- TextDetector: Finds text regions in images
- TextClassifier: Corrects text orientation
- TextRecognizer: Converts text images to strings

High-level interface:
- OCRPipeline: initialize once from a config, then run on images
"""

from .config import ClassifierConfig, DetectorConfig, OCRConfig, RecognizerConfig, load_config
from .errors import (
    ConfigError,
    ImageDecodeError,
    InferenceError,
    ModelLoadError,
    SceneOCRError,
)
from .pipeline import OCRPipeline
from .results import Angle, OCRResult, TextBox, TextLine
from .text_classifier import TextClassifier
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer

__version__ = "0.1.0"
__all__ = [
    "OCRPipeline",
    "TextDetector",
    "TextClassifier",
    "TextRecognizer",
    "DetectorConfig",
    "ClassifierConfig",
    "RecognizerConfig",
    "OCRConfig",
    "load_config",
    "TextBox",
    "Angle",
    "TextLine",
    "OCRResult",
    "SceneOCRError",
    "ConfigError",
    "ModelLoadError",
    "ImageDecodeError",
    "InferenceError",
]
