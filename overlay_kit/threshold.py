from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .types import Detection


@dataclass(frozen=True)
class ThresholdConfig:
    """
    Scene-density confidence policy.

    More than `dense_count` candidates is a crowded scene (use `high`), fewer than
    `sparse_count` is a sparse one (use `low`); anything in between uses `base`.
    """

    low: float = 0.30
    base: float = 0.40
    high: float = 0.50
    dense_count: int = 15
    sparse_count: int = 3

    def __post_init__(self) -> None:
        for name in ("low", "base", "high"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} threshold must be within [0, 1]")
        if not self.low <= self.base <= self.high:
            raise ValueError("thresholds must satisfy low <= base <= high")
        if self.sparse_count < 0:
            raise ValueError("sparse_count must be >= 0")
        if self.dense_count < self.sparse_count:
            raise ValueError("dense_count must be >= sparse_count")


def select_threshold(candidate_count: int, cfg: ThresholdConfig) -> float:
    if candidate_count > cfg.dense_count:
        return cfg.high
    if candidate_count < cfg.sparse_count:
        return cfg.low
    return cfg.base


def apply_adaptive_threshold(
    detections: Sequence[Detection],
    cfg: ThresholdConfig,
) -> Tuple[List[Detection], float]:
    """
    Keep detections with confidence >= the threshold chosen for this many candidates.

    Returns the kept detections (input order) and the threshold that was applied.
    """
    threshold = select_threshold(len(detections), cfg)
    return [d for d in detections if d.confidence >= threshold], threshold
