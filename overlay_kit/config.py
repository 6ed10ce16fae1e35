from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from .decoder import DecoderConfig
from .postprocess import PostConfig
from .runtime import LetterboxConfig
from .threshold import ThresholdConfig
from .tracker import TrackerConfig


@dataclass(frozen=True)
class OverlayConfig:
    """
    Every tunable constant of the decode -> suppress -> track chain in one place.
    """

    low_threshold: float = 0.30
    base_threshold: float = 0.40
    high_threshold: float = 0.50
    dense_count: int = 15
    sparse_count: int = 3
    iou_match_threshold: float = 0.35
    soft_nms_sigma: float = 0.5
    smoothing_alpha: float = 0.85
    max_frames_missing: int = 1
    min_box_size: float = 10.0
    model_input_size: int = 640
    num_classes: int = 80

    def __post_init__(self) -> None:
        for name in ("low_threshold", "base_threshold", "high_threshold"):
            if not 0.0 <= getattr(self, name) <= 1.0:
                raise ValueError(f"{name} must be within [0, 1]")
        if not self.low_threshold <= self.base_threshold <= self.high_threshold:
            raise ValueError("thresholds must satisfy low <= base <= high")
        if self.sparse_count < 0 or self.dense_count < self.sparse_count:
            raise ValueError("counts must satisfy 0 <= sparse_count <= dense_count")
        if not 0.0 < self.iou_match_threshold <= 1.0:
            raise ValueError("iou_match_threshold must be within (0, 1]")
        if self.soft_nms_sigma <= 0:
            raise ValueError("soft_nms_sigma must be > 0")
        if not 0.0 < self.smoothing_alpha <= 1.0:
            raise ValueError("smoothing_alpha must be within (0, 1]")
        if self.max_frames_missing < 0:
            raise ValueError("max_frames_missing must be >= 0")
        if self.min_box_size < 0:
            raise ValueError("min_box_size must be >= 0")
        if self.model_input_size < 32:
            raise ValueError("model_input_size must be >= 32")
        if self.num_classes < 1:
            raise ValueError("num_classes must be >= 1")

    def to_post_config(self) -> PostConfig:
        return PostConfig(
            decoder=DecoderConfig(
                num_classes=self.num_classes,
                min_box_size=self.min_box_size,
                score_floor=self.low_threshold,
            ),
            thresholds=ThresholdConfig(
                low=self.low_threshold,
                base=self.base_threshold,
                high=self.high_threshold,
                dense_count=self.dense_count,
                sparse_count=self.sparse_count,
            ),
            sigma=self.soft_nms_sigma,
        )

    def to_letterbox_config(self) -> LetterboxConfig:
        return LetterboxConfig(size=self.model_input_size)

    def to_tracker_config(self) -> TrackerConfig:
        return TrackerConfig(
            iou_match_threshold=self.iou_match_threshold,
            smoothing_alpha=self.smoothing_alpha,
            max_frames_missing=self.max_frames_missing,
        )


_FLOAT_KEYS = (
    "low_threshold",
    "base_threshold",
    "high_threshold",
    "iou_match_threshold",
    "soft_nms_sigma",
    "smoothing_alpha",
    "min_box_size",
)
_INT_KEYS = (
    "dense_count",
    "sparse_count",
    "max_frames_missing",
    "model_input_size",
    "num_classes",
)


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def overlay_config_from_dict(payload: Dict[str, Any]) -> OverlayConfig:
    if not isinstance(payload, dict):
        raise ValueError("Overlay config must be a JSON object")

    allowed = set(_FLOAT_KEYS) | set(_INT_KEYS)
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown overlay config keys: {unknown}")

    values: Dict[str, Any] = {}
    for key in _FLOAT_KEYS:
        if key in payload:
            values[key] = _require_number(payload, key)
    for key in _INT_KEYS:
        if key in payload:
            values[key] = _require_int(payload, key)
    return OverlayConfig(**values)


def load_overlay_config(path: Path) -> OverlayConfig:
    """
    Load an OverlayConfig from JSON. Keys are optional; missing ones keep their defaults.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Overlay config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid overlay config JSON: {path}") from exc
    return overlay_config_from_dict(payload)
