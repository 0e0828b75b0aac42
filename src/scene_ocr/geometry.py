"""Geometry helpers shared by detection post-processing and cropping.

Everything here is a pure function over numpy arrays; pixel primitives are
delegated to OpenCV and polygon offsetting to pyclipper.
"""

from typing import List, Tuple

import cv2
import numpy as np
import pyclipper
from shapely.geometry import Polygon


def min_area_quad(points: np.ndarray) -> Tuple[np.ndarray, float]:
    """Get the minimum area rectangle of a point set as an ordered quad.

    Vertices are sorted by x. Of the two leftmost, the one with the smaller y
    is top-left and the other bottom-left; of the two rightmost, the one with
    the smaller y is top-right and the other bottom-right.

    Args:
        points: Point set, shape (N, 2) or (N, 1, 2)

    Returns:
        Tuple of (quad as float32 array [TL, TR, BR, BL], longer side length)
    """
    points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    bounding_box = cv2.minAreaRect(points)
    vertices = sorted(list(cv2.boxPoints(bounding_box)), key=lambda p: p[0])

    if vertices[1][1] > vertices[0][1]:
        index_1, index_4 = 0, 1
    else:
        index_1, index_4 = 1, 0

    if vertices[3][1] > vertices[2][1]:
        index_2, index_3 = 2, 3
    else:
        index_2, index_3 = 3, 2

    quad = np.array(
        [vertices[index_1], vertices[index_2], vertices[index_3], vertices[index_4]],
        dtype=np.float32,
    )
    return quad, float(max(bounding_box[1]))


def unclip_distance(quad: np.ndarray, unclip_ratio: float) -> float:
    """Offset distance that recovers the full text extent from a shrunk box.

    ``area * unclip_ratio / perimeter``, or 0 for a degenerate polygon.
    """
    poly = Polygon(np.asarray(quad, dtype=np.float64).reshape(-1, 2))
    perimeter = poly.length
    if perimeter < 1e-6:
        return 0.0
    return abs(poly.area) * unclip_ratio / perimeter


def inflate(quad: np.ndarray, distance: float) -> np.ndarray:
    """Expand a polygon outward with round joins (Vatti clipping).

    Returns:
        All vertices of the offset result, shape (N, 2); empty when the
        offset produces no geometry
    """
    offset = pyclipper.PyclipperOffset()
    try:
        offset.AddPath(
            np.asarray(quad).reshape(-1, 2).tolist(),
            pyclipper.JT_ROUND,
            pyclipper.ET_CLOSEDPOLYGON,
        )
        solution = offset.Execute(distance)
    except pyclipper.ClipperException:
        return np.empty((0, 2), dtype=np.float32)

    points: List[List[int]] = [pt for path in solution for pt in path]
    if not points:
        return np.empty((0, 2), dtype=np.float32)
    return np.array(points, dtype=np.float32)


def masked_mean_score(quad: np.ndarray, prob_map: np.ndarray) -> float:
    """Mean probability inside a quad.

    Args:
        quad: Box points, shape (4, 2)
        prob_map: Probability map as 0-255 intensities, shape (H, W)

    Returns:
        Mean of ``prob_map / 255`` over the rasterized quad
    """
    h, w = prob_map.shape[:2]
    box = np.array(quad, dtype=np.float32).reshape(-1, 2)

    xmin = int(np.clip(np.floor(box[:, 0].min()), 0, w - 1))
    xmax = int(np.clip(np.ceil(box[:, 0].max()), 0, w - 1))
    ymin = int(np.clip(np.floor(box[:, 1].min()), 0, h - 1))
    ymax = int(np.clip(np.ceil(box[:, 1].max()), 0, h - 1))

    mask = np.zeros((ymax - ymin + 1, xmax - xmin + 1), dtype=np.uint8)
    box[:, 0] = box[:, 0] - xmin
    box[:, 1] = box[:, 1] - ymin
    cv2.fillPoly(mask, box.reshape(1, -1, 2).astype(np.int32), 1)

    crop = prob_map[ymin:ymax + 1, xmin:xmax + 1]
    return float(cv2.mean(crop, mask)[0] / 255.0)


def perspective_crop(image: np.ndarray, quad) -> np.ndarray:
    """Crop and rectify a text region from an image.

    Args:
        image: Source image (H, W, C)
        quad: Integer box points [TL, TR, BR, BL]

    Returns:
        Axis-aligned text image; tall results are turned 90 degrees so the
        line reads horizontally
    """
    points = np.array(quad, dtype=np.int32).reshape(4, 2)

    left, top = points.min(axis=0)
    right, bottom = points.max(axis=0)
    crop = image[top:bottom + 1, left:right + 1]

    points = (points - [left, top]).astype(np.float32)

    crop_w = max(int(np.linalg.norm(points[0] - points[1])), 1)
    crop_h = max(int(np.linalg.norm(points[0] - points[3])), 1)

    pts_std = np.float32([
        [0, 0],
        [crop_w, 0],
        [crop_w, crop_h],
        [0, crop_h]
    ])

    M = cv2.getPerspectiveTransform(points, pts_std)
    dst_img = cv2.warpPerspective(
        crop,
        M,
        (crop_w, crop_h),
        borderMode=cv2.BORDER_REPLICATE,
        flags=cv2.INTER_CUBIC
    )

    dst_img_height, dst_img_width = dst_img.shape[0:2]
    if dst_img_height >= dst_img_width * 1.5:
        dst_img = cv2.rotate(dst_img, cv2.ROTATE_90_COUNTERCLOCKWISE)

    return dst_img
