"""Exceptions raised by the OCR pipeline."""


class SceneOCRError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(SceneOCRError):
    """Raised when a configuration source cannot be read or is malformed."""


class ModelLoadError(SceneOCRError):
    """Raised when a model file or vocabulary cannot be loaded."""


class ImageDecodeError(SceneOCRError):
    """Raised when the input image is missing or cannot be decoded."""


class InferenceError(SceneOCRError):
    """Raised when ONNX Runtime fails during a forward pass."""
