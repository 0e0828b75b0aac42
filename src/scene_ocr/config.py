"""Configuration classes for OCR modules."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Sequence, Union

from .errors import ConfigError

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class DetectorConfig:
    """Configuration for text detection stage."""
    infer_threads: int = 1  # ONNX Runtime intra-op threads
    model_path: str = ""  # Model path prefix (with or without .onnx)
    padding: int = 50  # White border added around the image before resizing
    max_side_len: int = 1024  # Longest side of the resized (unpadded) image
    box_thresh: float = 0.5  # Minimum mean probability inside a box
    bitmap_thresh: float = 0.3  # Binarization threshold
    unclip_ratio: float = 2.0  # Text region expansion ratio
    fp16: bool = False  # Half precision (TensorRT only)


@dataclass
class ClassifierConfig:
    """Configuration for text orientation classification stage."""
    infer_threads: int = 1
    reco_threads: int = 1  # Worker pool width for the batch
    model_path: str = ""
    enable: bool = True  # Skip classification entirely when False
    most_angle: bool = True  # Majority vote over the whole image
    fp16: bool = False


@dataclass
class RecognizerConfig:
    """Configuration for text recognition stage."""
    infer_threads: int = 1
    reco_threads: int = 1
    model_path: str = ""
    keys_path: str = ""  # Vocabulary manifest, one token per line
    fp16: bool = False


@dataclass
class OCRConfig:
    """Configuration for the whole pipeline."""
    save: bool = False  # Dump debug images after every run
    save_dir: str = "check"
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration
    det: DetectorConfig = field(default_factory=DetectorConfig)
    cls: ClassifierConfig = field(default_factory=ClassifierConfig)
    rec: RecognizerConfig = field(default_factory=RecognizerConfig)


def resolve_threads(threads: int) -> int:
    """Map a thread count of 0 or less to the number of available processors."""
    return threads if threads > 0 else (os.cpu_count() or 1)


def _get_value(data: Dict[str, Any], keys: Sequence[str], default: Any) -> Any:
    """Walk nested keys, falling back to ``default`` on a missing key or bad type."""
    current = data
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            logger.warning(
                "Failed to find key: %s, use default value: %r", ".".join(keys), default
            )
            return default
        current = current[key]

    expected = type(default)
    # bool is a subclass of int, so it must be checked first
    if expected is bool:
        ok = isinstance(current, bool)
    elif expected is int:
        ok = isinstance(current, int) and not isinstance(current, bool)
    elif expected is float:
        ok = isinstance(current, (int, float)) and not isinstance(current, bool)
        current = float(current) if ok else current
    else:
        ok = isinstance(current, expected)

    if not ok:
        logger.warning(
            "Invalid value %r for key: %s, use default value: %r",
            current, ".".join(keys), default,
        )
        return default
    return current


def parse_config(data: Dict[str, Any]) -> OCRConfig:
    """Build an :class:`OCRConfig` from a parsed JSON object.

    Missing keys never fail; only a non-object root does.

    Args:
        data: Parsed JSON document

    Returns:
        Populated configuration with thread counts resolved
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be an object, got {type(data).__name__}")

    d = DetectorConfig()
    det = DetectorConfig(
        infer_threads=resolve_threads(_get_value(data, ("det", "infer_threads"), d.infer_threads)),
        model_path=_get_value(data, ("det", "model_path"), d.model_path),
        padding=_get_value(data, ("det", "padding"), d.padding),
        max_side_len=_get_value(data, ("det", "max_side_len"), d.max_side_len),
        box_thresh=_get_value(data, ("det", "box_thres"), d.box_thresh),
        bitmap_thresh=_get_value(data, ("det", "bitmap_thres"), d.bitmap_thresh),
        unclip_ratio=_get_value(data, ("det", "unclip_ratio"), d.unclip_ratio),
        fp16=_get_value(data, ("det", "fp16"), d.fp16),
    )

    c = ClassifierConfig()
    cls = ClassifierConfig(
        infer_threads=resolve_threads(_get_value(data, ("cls", "infer_threads"), c.infer_threads)),
        reco_threads=resolve_threads(_get_value(data, ("cls", "reco_threads"), c.reco_threads)),
        model_path=_get_value(data, ("cls", "model_path"), c.model_path),
        enable=_get_value(data, ("cls", "enable"), c.enable),
        most_angle=_get_value(data, ("cls", "most_angle"), c.most_angle),
        fp16=_get_value(data, ("cls", "fp16"), c.fp16),
    )

    r = RecognizerConfig()
    rec = RecognizerConfig(
        infer_threads=resolve_threads(_get_value(data, ("rec", "infer_threads"), r.infer_threads)),
        reco_threads=resolve_threads(_get_value(data, ("rec", "reco_threads"), r.reco_threads)),
        model_path=_get_value(data, ("rec", "model_path"), r.model_path),
        keys_path=_get_value(data, ("rec", "keys_path"), r.keys_path),
        fp16=_get_value(data, ("rec", "fp16"), r.fp16),
    )

    o = OCRConfig()
    return OCRConfig(
        save=_get_value(data, ("save",), o.save),
        save_dir=_get_value(data, ("save_dir",), o.save_dir),
        use_gpu=_get_value(data, ("use_gpu",), o.use_gpu),
        use_tensorrt=_get_value(data, ("use_tensorrt",), o.use_tensorrt),
        det=det,
        cls=cls,
        rec=rec,
    )


def load_config(source: Union[str, Path, Dict[str, Any], OCRConfig]) -> OCRConfig:
    """Load pipeline configuration.

    Args:
        source: Path to a JSON file, an already parsed dict, or an OCRConfig

    Returns:
        OCRConfig

    Raises:
        ConfigError: If the file cannot be read or is not valid JSON
    """
    if isinstance(source, OCRConfig):
        return source
    if isinstance(source, dict):
        return parse_config(source)

    path = Path(source)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read config {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse JSON config {path}: {e}") from e

    return parse_config(data)


def log_config(config: OCRConfig) -> None:
    """Dump the effective configuration at debug level."""
    det, cls, rec = config.det, config.cls, config.rec
    logger.debug("--------------- Configs ---------------")
    logger.debug("Det config")
    logger.debug(
        "  infer_threads(%d) padding(%d) max_side_len(%d) box_thresh(%.2f) "
        "bitmap_thresh(%.2f) unclip_ratio(%.2f) fp16(%d)",
        det.infer_threads, det.padding, det.max_side_len, det.box_thresh,
        det.bitmap_thresh, det.unclip_ratio, det.fp16,
    )
    logger.debug("Cls config")
    logger.debug(
        "  infer_threads(%d) reco_threads(%d) enable(%d) most_angle(%d) fp16(%d)",
        cls.infer_threads, cls.reco_threads, cls.enable, cls.most_angle, cls.fp16,
    )
    logger.debug("Rec config")
    logger.debug(
        "  infer_threads(%d) reco_threads(%d) fp16(%d)",
        rec.infer_threads, rec.reco_threads, rec.fp16,
    )
    logger.debug("---------------------------------------")
