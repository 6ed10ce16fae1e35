from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .metadata import class_name_for


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned box in source-image pixel coordinates.
    """

    left: float
    top: float
    right: float
    bottom: float

    def __post_init__(self) -> None:
        coords = (self.left, self.top, self.right, self.bottom)
        if not all(math.isfinite(v) for v in coords):
            raise ValueError(f"Box coordinates must be finite, got {coords}")
        if self.right <= self.left:
            raise ValueError(f"Box right ({self.right}) must be > left ({self.left})")
        if self.bottom <= self.top:
            raise ValueError(f"Box bottom ({self.bottom}) must be > top ({self.top})")

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.left, self.top, self.right, self.bottom


@dataclass(frozen=True)
class Detection:
    """
    One labelled box. Never mutated: smoothing and rescoring build a new instance.
    """

    box: BoundingBox
    class_index: int
    confidence: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    @property
    def class_name(self) -> str:
        return class_name_for(self.class_index)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.box.as_xyxy()


@dataclass(frozen=True, eq=False)
class RawOutput:
    """
    Flat model output plus the shape it was produced with.
    """

    buffer: np.ndarray
    shape: Tuple[int, ...]

    @property
    def size(self) -> int:
        return int(self.buffer.size)


@dataclass(frozen=True)
class LetterboxParams:
    """
    Geometry of a letterbox resize: uniform scale, then left/top padding in model pixels.
    """

    scale: float = 1.0
    pad_x: int = 0
    pad_y: int = 0

    def __post_init__(self) -> None:
        if not self.scale > 0:
            raise ValueError("scale must be > 0")
