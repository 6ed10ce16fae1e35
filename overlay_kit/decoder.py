from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .metadata import NUM_CLASSES
from .types import BoundingBox, Detection, LetterboxParams, RawOutput

logger = logging.getLogger(__name__)

FEATURE_MAJOR = "feature_major"
PREDICTION_MAJOR = "prediction_major"
FALLBACK = "fallback"

# cx, cy, w, h
BOX_FEATURES = 4


@dataclass(frozen=True)
class DecoderConfig:
    """
    Konfigurasi untuk decoding raw output detektor.

    - num_classes: class-score columns per prediction (feature count = 4 + num_classes)
    - min_box_size: boxes narrower or shorter than this (source pixels) are noise
    - score_floor: candidates below this never reach adaptive thresholding; must not
      exceed the lowest downstream threshold
    - normalized_coordinate_heuristic: for prediction-major output (exact F-column
      match only, never the fallback layout), treat box values
      with magnitude < 1.0 as normalised (0..1) instead of model pixels
    """

    num_classes: int = NUM_CLASSES
    min_box_size: float = 10.0
    score_floor: float = 0.30
    normalized_coordinate_heuristic: bool = True

    def __post_init__(self) -> None:
        if self.num_classes < 1:
            raise ValueError("num_classes must be >= 1")
        if self.min_box_size < 0:
            raise ValueError("min_box_size must be >= 0")
        if not 0.0 <= self.score_floor <= 1.0:
            raise ValueError("score_floor must be within [0, 1]")

    @property
    def feature_count(self) -> int:
        return BOX_FEATURES + self.num_classes


@dataclass(frozen=True)
class TensorLayout:
    kind: str
    num_predictions: int
    num_features: int


class TensorDecoder:
    """
    Decode raw detector output into candidate detections in source-image pixels.

    Layouts yang didukung (per image, optional leading batch axis of 1):
    - (F, P) feature-major, e.g. 84 x 8400: buffer[feature * P + p]
    - (P, F) prediction-major, e.g. 8400 x 84: buffer[p * F + feature]
    - anything else: the last axis is taken as predictions and the width is
      inferred as total / P (read like prediction-major, always model pixels)

    with F = 4 + num_classes and each prediction laid out as
    [cx, cy, w, h, class_scores...]. One class per box (argmax).
    """

    def __init__(self, cfg: DecoderConfig = DecoderConfig()):
        self.cfg = cfg

    def decode(
        self,
        raw: RawOutput,
        letterbox: LetterboxParams,
        image_size: Tuple[int, int],
    ) -> List[Detection]:
        """
        Args:
            raw: flat output buffer + shape, borrowed for this call only
            letterbox: scale/padding used to build the model input
            image_size: (width, height) of the source image

        Unsupported shapes are logged and yield an empty list.
        """

        img_w, img_h = image_size
        if img_w <= 0 or img_h <= 0:
            raise ValueError(f"image_size must be positive, got {image_size}")

        try:
            layout = self.infer_layout(raw.shape, raw.size)
        except ValueError as exc:
            logger.warning("Skipping frame, unsupported detector output: %s", exc)
            return []

        rows = self._prediction_rows(raw.buffer, layout)
        return self._decode_rows(rows, layout, letterbox, (img_w, img_h))

    def infer_layout(self, shape: Sequence[int], total: int) -> TensorLayout:
        dims = tuple(int(d) for d in shape)
        if len(dims) == 3:
            if dims[0] != 1:
                raise ValueError(f"Batch > 1 is not supported (got shape {dims}).")
            dims = dims[1:]
        if len(dims) != 2:
            raise ValueError(f"Expected 2 or 3 dimensions, got shape {tuple(shape)}.")
        if any(d <= 0 for d in dims):
            raise ValueError(f"Shape has an empty dimension: {tuple(shape)}.")

        rows, cols = dims
        if rows * cols != total:
            raise ValueError(f"Buffer holds {total} values but shape {tuple(shape)} needs {rows * cols}.")

        features = self.cfg.feature_count
        if rows == features:
            return TensorLayout(FEATURE_MAJOR, num_predictions=cols, num_features=features)
        if cols == features:
            return TensorLayout(PREDICTION_MAJOR, num_predictions=rows, num_features=features)

        num_predictions = cols
        num_features = total // num_predictions
        if num_features <= BOX_FEATURES:
            raise ValueError(
                f"Shape {tuple(shape)} leaves {num_features} values per prediction; need > {BOX_FEATURES}."
            )
        logger.debug(
            "Shape %s matches no known layout; decoding as %d predictions x %d features",
            tuple(shape),
            num_predictions,
            num_features,
        )
        return TensorLayout(FALLBACK, num_predictions=num_predictions, num_features=num_features)

    # ------------------------------------------------------------------ #
    # Helper internal
    # ------------------------------------------------------------------ #
    def _prediction_rows(self, buffer: np.ndarray, layout: TensorLayout) -> np.ndarray:
        """
        View the flat buffer as (P, F) regardless of memory layout.
        """
        values = np.asarray(buffer).reshape(-1)
        if layout.kind == FEATURE_MAJOR:
            return values.reshape(layout.num_features, layout.num_predictions).T
        return values.reshape(layout.num_predictions, layout.num_features)

    def _decode_rows(
        self,
        rows: np.ndarray,
        layout: TensorLayout,
        letterbox: LetterboxParams,
        image_size: Tuple[int, int],
    ) -> List[Detection]:
        n_classes = min(layout.num_features - BOX_FEATURES, self.cfg.num_classes)
        class_scores = rows[:, BOX_FEATURES : BOX_FEATURES + n_classes]
        class_ids = np.argmax(class_scores, axis=1)
        scores = class_scores[np.arange(class_scores.shape[0]), class_ids]

        keep = scores >= self.cfg.score_floor
        if not np.any(keep):
            return []
        boxes = rows[keep, :BOX_FEATURES].astype(np.float64)
        scores, class_ids = np.minimum(scores[keep], 1.0), class_ids[keep]

        normalized = layout.kind == PREDICTION_MAJOR and self.cfg.normalized_coordinate_heuristic
        ltrb = self._to_image_ltrb(boxes, letterbox, image_size, normalized)

        width = ltrb[:, 2] - ltrb[:, 0]
        height = ltrb[:, 3] - ltrb[:, 1]
        valid = (
            np.all(np.isfinite(boxes), axis=1)
            & np.all(np.isfinite(ltrb), axis=1)
            & (width > 0)
            & (height > 0)
            & (width >= self.cfg.min_box_size)
            & (height >= self.cfg.min_box_size)
        )

        return [
            Detection(
                box=BoundingBox(float(left), float(top), float(right), float(bottom)),
                class_index=int(cls_id),
                confidence=float(score),
            )
            for (left, top, right, bottom), score, cls_id in zip(ltrb[valid], scores[valid], class_ids[valid])
        ]

    def _to_image_ltrb(
        self,
        boxes: np.ndarray,
        letterbox: LetterboxParams,
        image_size: Tuple[int, int],
        normalized: bool,
    ) -> np.ndarray:
        """
        Map (N,4) cxcywh boxes from model input space back to clamped source-image ltrb.
        """

        img_w, img_h = image_size
        scale = float(letterbox.scale)
        cx, cy, w, h = boxes.T

        cx_img = (cx - letterbox.pad_x) / scale
        cy_img = (cy - letterbox.pad_y) / scale
        w_img = w / scale
        h_img = h / scale

        if normalized:
            # Magnitude < 1.0 cannot be a model pixel coordinate of a real box: read as 0..1.
            cx_img = np.where(np.abs(cx) < 1.0, cx * img_w, cx_img)
            cy_img = np.where(np.abs(cy) < 1.0, cy * img_h, cy_img)
            w_img = np.where(np.abs(w) < 1.0, w * img_w, w_img)
            h_img = np.where(np.abs(h) < 1.0, h * img_h, h_img)

        left = np.clip(cx_img - w_img / 2, 0, img_w)
        top = np.clip(cy_img - h_img / 2, 0, img_h)
        right = np.clip(cx_img + w_img / 2, 0, img_w)
        bottom = np.clip(cy_img + h_img / 2, 0, img_h)
        return np.stack([left, top, right, bottom], axis=1)
