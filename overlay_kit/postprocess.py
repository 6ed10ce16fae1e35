from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Tuple

from .decoder import DecoderConfig, TensorDecoder
from .nms import SoftNMSConfig, soft_nms
from .tensor import as_raw_output
from .threshold import ThresholdConfig, apply_adaptive_threshold
from .types import Detection, LetterboxParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostConfig:
    """
    Konfigurasi untuk post processing: decode -> adaptive threshold -> Soft-NMS.
    """

    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    sigma: float = 0.5
    min_score: float = 0.01
    # Accepted boxes need a current score >= thresholds.base * keep_ratio.
    keep_ratio: float = 0.5

    def __post_init__(self) -> None:
        if self.decoder.score_floor > self.thresholds.low:
            raise ValueError(
                f"decoder score_floor ({self.decoder.score_floor}) must be <= low threshold ({self.thresholds.low})"
            )

    def soft_nms_config(self) -> SoftNMSConfig:
        return SoftNMSConfig(
            sigma=self.sigma,
            min_score=self.min_score,
            base_threshold=self.thresholds.base,
            keep_ratio=self.keep_ratio,
        )


class DetectionPostprocessor:
    """
    Raw model output -> suppressed detections in original image coordinates.

    Stateless: the same input always gives the same output.
    """

    def __init__(self, cfg: PostConfig = PostConfig()):
        self.cfg = cfg
        self.decoder = TensorDecoder(cfg.decoder)
        self._nms_cfg = cfg.soft_nms_config()

    def process(
        self,
        preds: Any,
        letterbox: LetterboxParams,
        image_size: Tuple[int, int],
    ) -> List[Detection]:
        """
        Args:
            preds: model output for a single image (RawOutput, NumPy array, nested lists, tensor)
            letterbox: scale/pad used when building the model input
            image_size: (width, height) of the original image
        """

        try:
            raw = as_raw_output(preds)
        except ValueError as exc:
            logger.warning("Skipping frame, unreadable detector output: %s", exc)
            return []

        candidates = self.decoder.decode(raw, letterbox, image_size)
        if not candidates:
            return []

        kept, threshold = apply_adaptive_threshold(candidates, self.cfg.thresholds)
        logger.debug("%d candidates, threshold %.2f kept %d", len(candidates), threshold, len(kept))
        if not kept:
            return []

        return soft_nms(kept, self._nms_cfg)
