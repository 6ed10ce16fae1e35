from dataclasses import dataclass, replace
from typing import List, Sequence

import numpy as np

from .types import BoundingBox, Detection


@dataclass(frozen=True)
class SoftNMSConfig:
    sigma: float = 0.5
    # Candidates decayed below this are dropped from the pool.
    min_score: float = 0.01
    base_threshold: float = 0.40
    keep_ratio: float = 0.5

    def __post_init__(self) -> None:
        if self.sigma <= 0:
            raise ValueError("sigma must be > 0")
        if self.min_score < 0:
            raise ValueError("min_score must be >= 0")
        if not 0.0 <= self.base_threshold <= 1.0:
            raise ValueError("base_threshold must be within [0, 1]")
        if self.keep_ratio < 0:
            raise ValueError("keep_ratio must be >= 0")

    @property
    def keep_threshold(self) -> float:
        return self.base_threshold * self.keep_ratio


def box_iou(a: BoundingBox, b: BoundingBox) -> float:
    """
    Intersection over union of two boxes; 0.0 when disjoint or the union is empty.
    """
    inter_w = max(0.0, min(a.right, b.right) - max(a.left, b.left))
    inter_h = max(0.0, min(a.bottom, b.bottom) - max(a.top, b.top))
    inter = inter_w * inter_h
    if inter <= 0.0:
        return 0.0

    union = a.area + b.area - inter
    if union <= 0.0:
        return 0.0
    return float(inter / union)


def iou_one_to_many(box: np.ndarray, boxes: np.ndarray) -> np.ndarray:
    """
    IoU of one xyxy box (4,) against boxes (N,4). Zero-union pairs yield 0.0, not NaN.
    """
    if boxes.size == 0:
        return np.empty((0,), dtype=np.float64)

    xx1 = np.maximum(box[0], boxes[:, 0])
    yy1 = np.maximum(box[1], boxes[:, 1])
    xx2 = np.minimum(box[2], boxes[:, 2])
    yy2 = np.minimum(box[3], boxes[:, 3])

    w = np.maximum(0.0, xx2 - xx1)
    h = np.maximum(0.0, yy2 - yy1)
    inter = w * h
    area = (box[2] - box[0]) * (box[3] - box[1])
    areas = (boxes[:, 2] - boxes[:, 0]) * (boxes[:, 3] - boxes[:, 1])
    union = area + areas - inter

    iou = np.zeros_like(inter, dtype=np.float64)
    np.divide(inter, union, out=iou, where=union > 0)
    return iou


def soft_nms(detections: Sequence[Detection], cfg: SoftNMSConfig) -> List[Detection]:
    """
    Gaussian Soft-NMS, applied per class.

    Instead of discarding every box above an IoU cutoff, each accepted box decays the
    scores of its same-class neighbours by exp(-iou^2 / sigma). Boxes are accepted in
    order of current score while that score is >= cfg.keep_threshold. Accepted boxes
    are returned with their current (possibly decayed) confidence.
    """

    if not detections:
        return []

    pool = list(detections)
    boxes = np.array([d.as_xyxy() for d in pool], dtype=np.float64)
    scores = np.array([d.confidence for d in pool], dtype=np.float64)
    classes = np.array([d.class_index for d in pool], dtype=np.int64)
    alive = np.arange(len(pool))

    keep_threshold = cfg.keep_threshold
    selected: List[Detection] = []

    while alive.size > 0:
        # Only same-class neighbours are decayed, so the max must be recomputed each pass.
        pos = int(np.argmax(scores[alive]))
        i = int(alive[pos])
        if scores[i] < keep_threshold:
            break

        det = pool[i]
        if scores[i] == det.confidence:
            selected.append(det)
        else:
            selected.append(replace(det, confidence=float(scores[i])))

        alive = np.delete(alive, pos)
        if alive.size == 0:
            break

        same = alive[classes[alive] == classes[i]]
        if same.size > 0:
            iou = iou_one_to_many(boxes[i], boxes[same])
            scores[same] = scores[same] * np.exp(-(iou ** 2) / cfg.sigma)

        alive = alive[scores[alive] >= cfg.min_score]

    return selected
