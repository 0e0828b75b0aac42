"""Utility functions for OCR pipeline."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, List, Sequence, TypeVar, Union

import cv2
import numpy as np
from PIL import Image, ImageDraw

from .errors import ImageDecodeError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def parallel_map(
    func: Callable[[T], R],
    items: Sequence[T],
    max_workers: int,
    default: Callable[[], R],
    desc: str = "item",
) -> List[R]:
    """Apply ``func`` to every item with a bounded thread pool.

    Each worker fills exactly one slot of a pre-allocated result list, so
    the output order always matches ``items``. A failing item is logged and
    replaced by ``default()``; the rest of the batch still runs.
    """
    results: List[R] = [None] * len(items)
    if not items:
        return results

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        future_to_index = {
            executor.submit(func, item): i for i, item in enumerate(items)
        }
        for future in as_completed(future_to_index):
            idx = future_to_index[future]
            try:
                results[idx] = future.result()
            except Exception as exc:
                logger.error("%s %d generated an exception: %s", desc, idx, exc)
                results[idx] = default()

    return results


def to_bgr(image) -> np.ndarray:
    """Coerce a decoded image into a 3-channel BGR uint8 array.

    Accepts numpy arrays (gray, BGR or BGRA) and PIL images (converted from RGB).

    Raises:
        ImageDecodeError: If the object is not a usable image
    """
    if isinstance(image, Image.Image):
        image = np.array(image.convert("RGB"))[:, :, ::-1].copy()

    if not isinstance(image, np.ndarray) or image.size == 0:
        raise ImageDecodeError("Input is not a decoded image")

    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if image.ndim == 3 and image.shape[2] == 3:
        return image

    raise ImageDecodeError(f"Unsupported image shape: {image.shape}")


def read_image(path: Union[str, Path]) -> np.ndarray:
    """Decode an image file into a BGR array.

    Raises:
        ImageDecodeError: If the file is missing or cannot be decoded
    """
    path = Path(path)
    if not path.is_file():
        raise ImageDecodeError(f"Failed to read image: {path}")
    return decode_image(path.read_bytes(), name=str(path))


def decode_image(data: bytes, name: str = "buffer") -> np.ndarray:
    """Decode an in-memory encoded image into a BGR array.

    Raises:
        ImageDecodeError: If the bytes are not a decodable image
    """
    buf = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buf, cv2.IMREAD_COLOR) if buf.size else None
    if image is None:
        raise ImageDecodeError(f"Failed to decode image {name}")
    return image


def draw_ocr_boxes(image: np.ndarray, boxes: Sequence) -> np.ndarray:
    """Draw detection boxes on a copy of a BGR image.

    Args:
        image: Source image
        boxes: Quads as sequences of 4 (x, y) points

    Returns:
        RGB-drawn result converted back to BGR
    """
    img = Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
    draw = ImageDraw.Draw(img)

    for box in boxes:
        box = np.array(box).astype(np.int32).reshape(-1, 2)
        draw.polygon([tuple(int(v) for v in p) for p in box], outline=(0, 0, 255), width=2)

    return cv2.cvtColor(np.array(img), cv2.COLOR_RGB2BGR)


def save_results(image: np.ndarray, results: Sequence, text_images: Sequence[np.ndarray],
                 folder: Union[str, Path] = "check") -> Path:
    """Dump detection and recognition inputs for debugging.

    Writes ``det.jpg`` with every box drawn and ``text{i}.jpg`` for each
    recognizer input.
    """
    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)

    det_image = draw_ocr_boxes(image, [r.box.points for r in results])
    cv2.imwrite(str(folder / "det.jpg"), det_image)

    for i, result in enumerate(results):
        p = result.box.points
        logger.debug(
            "Box[%d] (%d, %d) (%d, %d) (%d, %d) (%d, %d) score: %.2f | Rotate: %d, score: %.2f",
            i, p[0][0], p[0][1], p[1][0], p[1][1], p[2][0], p[2][1], p[3][0], p[3][1],
            result.box.score * 100.0, result.angle.is_rotated, result.angle.score * 100.0,
        )

    for i, text_image in enumerate(text_images):
        cv2.imwrite(str(folder / f"text{i}.jpg"), text_image)

    logger.info("Results saved to %s", folder)
    return folder
