"""
High-level OCR Pipeline
Combines the three modular stages into a single "process one image" call
"""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .config import OCRConfig, load_config, log_config
from .errors import ConfigError, InferenceError, ModelLoadError
from .geometry import perspective_crop
from .onnx_base import OnnxSession
from .postprocess import load_vocabulary
from .results import OCRResult
from .text_classifier import TextClassifier
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer
from .utils import decode_image, read_image, save_results, to_bgr

logger = logging.getLogger(__name__)

ConfigSource = Union[str, Path, Dict[str, Any], OCRConfig]


class OCRPipeline:
    """
    Complete OCR pipeline combining detection, classification, and recognition.

    The pipeline is either uninitialized (no models) or ready (all three
    models loaded). ``run`` on an uninitialized pipeline returns no results.

    Usage:
        ocr = OCRPipeline()
        if ocr.initialize("models/config.json"):
            results = ocr.run(image)
    """

    def __init__(
        self,
        config_source: Optional[ConfigSource] = None,
        session_factory: Callable[..., Any] = OnnxSession,
    ):
        """
        Initialize OCR pipeline

        Args:
            config_source: If given, ``initialize`` is called right away
            session_factory: Callable building a model handle from
                ``(model_path, num_threads=..., use_gpu=..., use_tensorrt=..., fp16=...)``
        """
        self.session_factory = session_factory
        self.config: Optional[OCRConfig] = None
        self.text_detector: Optional[TextDetector] = None
        self.text_classifier: Optional[TextClassifier] = None
        self.text_recognizer: Optional[TextRecognizer] = None

        if config_source is not None:
            self.initialize(config_source)

    @property
    def is_initialized(self) -> bool:
        return (
            self.text_detector is not None
            and self.text_classifier is not None
            and self.text_recognizer is not None
        )

    def initialize(self, config_source: ConfigSource) -> bool:
        """
        Load configuration and all three models.

        Args:
            config_source: JSON config path, parsed dict, or OCRConfig

        Returns:
            True when every model loaded; on any failure every handle is
            released and False is returned
        """
        self._release()

        try:
            config = load_config(config_source)
        except ConfigError as e:
            logger.error("%s", e)
            return False

        log_config(config)

        try:
            det_session = self._load_session(config.det.model_path, config.det.infer_threads,
                                             config.det.fp16, config)
            cls_session = self._load_session(config.cls.model_path, config.cls.infer_threads,
                                             config.cls.fp16, config)
            rec_session = self._load_session(config.rec.model_path, config.rec.infer_threads,
                                             config.rec.fp16, config)
            keys = load_vocabulary(config.rec.keys_path)
        except ModelLoadError as e:
            logger.error("%s", e)
            return False

        self.config = config
        self.text_detector = TextDetector(det_session, config.det)
        self.text_classifier = TextClassifier(cls_session, config.cls)
        self.text_recognizer = TextRecognizer(rec_session, keys, config.rec)
        return True

    def _load_session(self, model_path: str, threads: int, fp16: bool, config: OCRConfig):
        try:
            return self.session_factory(
                model_path,
                num_threads=threads,
                use_gpu=config.use_gpu,
                use_tensorrt=config.use_tensorrt,
                fp16=fp16,
            )
        except ModelLoadError:
            raise
        except Exception as e:
            raise ModelLoadError(f"Failed to load model {model_path}: {e}") from e

    def _release(self):
        self.config = None
        self.text_detector = None
        self.text_classifier = None
        self.text_recognizer = None

    def run(self, image) -> List[OCRResult]:
        """
        Perform OCR on image

        Args:
            image: Decoded image, numpy array (BGR) or PIL Image

        Returns:
            One OCRResult per detected text region, top of the image first.
            Empty if nothing was detected, detection failed, or the pipeline
            is not initialized.

        Raises:
            ImageDecodeError: If ``image`` is not a usable image
        """
        if not self.is_initialized:
            missing = [
                name for name, stage in (
                    ("det", self.text_detector),
                    ("cls", self.text_classifier),
                    ("rec", self.text_recognizer),
                ) if stage is None
            ]
            logger.warning("Return an empty result since (%s) not loaded", " ".join(missing))
            return []

        image = to_bgr(image)

        # Stage 1: Detect text regions
        total_start = det_start = time.perf_counter()
        try:
            text_boxes = self.text_detector(image)
        except InferenceError as e:
            logger.error("Text detection failed: %s", e)
            return []
        det_time = (time.perf_counter() - det_start) * 1000.0

        # Crop text patches, index-aligned with text_boxes
        text_images = [perspective_crop(image, box.points) for box in text_boxes]

        # Stage 2: Classify orientation and flip upside-down crops
        cls_start = time.perf_counter()
        text_images, angles = self.text_classifier(text_images, auto_rotate=True)
        cls_time = (time.perf_counter() - cls_start) * 1000.0

        # Stage 3: Recognize text
        rec_start = time.perf_counter()
        text_lines = self.text_recognizer(text_images)
        rec_time = (time.perf_counter() - rec_start) * 1000.0

        results = [
            OCRResult(box=box, angle=angle, line=line)
            for box, angle, line in zip(text_boxes, angles, text_lines)
        ]

        total_time = (time.perf_counter() - total_start) * 1000.0
        logger.info(
            "det_time(%.2fms), cls_time(%.2fms), rec_time(%.2fms), total(%.2fms)",
            det_time, cls_time, rec_time, total_time,
        )

        if self.config.save:
            save_results(image, results, text_images, self.config.save_dir)

        return results

    def run_path(self, image_path: Union[str, Path]) -> List[OCRResult]:
        """Decode an image file and run OCR on it."""
        return self.run(read_image(image_path))

    def run_bytes(self, data: bytes) -> List[OCRResult]:
        """Decode an encoded image buffer and run OCR on it."""
        return self.run(decode_image(data))

    def __repr__(self):
        return (
            f"OCRPipeline(\n"
            f"  detector={self.text_detector},\n"
            f"  classifier={self.text_classifier},\n"
            f"  recognizer={self.text_recognizer}\n"
            f")"
        )
