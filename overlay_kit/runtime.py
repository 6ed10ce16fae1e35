from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .letterbox import letterbox
from .postprocess import DetectionPostprocessor, PostConfig
from .tracker import DetectionTracker, TrackerConfig
from .types import Detection, LetterboxParams

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class LetterboxConfig:
    size: int = 640
    color: Tuple[int, int, int] = (114, 114, 114)

    def __post_init__(self) -> None:
        if self.size < 32:
            raise ValueError("size must be >= 32")


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    image_size: Tuple[int, int]
    letterbox: LetterboxParams


@dataclass(frozen=True)
class FrameResult:
    """
    Stable detections for one frame plus tracker diagnostics.
    """

    detections: List[Detection] = field(default_factory=list)
    active_tracks: int = 0
    avg_confidence: float = 0.0


class FrameGate:
    """
    Latest-frame-wins admission for a single processing worker.

    A frame is admitted only when no cycle is running and at least `min_interval_s`
    has passed since the previous admitted frame. Rejected frames are dropped, not queued.
    """

    def __init__(self, min_interval_s: float = 0.05, clock: Callable[[], float] = time.monotonic) -> None:
        if min_interval_s < 0:
            raise ValueError("min_interval_s must be >= 0")
        self.min_interval_s = float(min_interval_s)
        self._clock = clock
        self._busy = threading.Lock()
        self._counter_lock = threading.Lock()
        self._last_start: Optional[float] = None
        self._dropped = 0

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def try_enter(self) -> bool:
        if not self._busy.acquire(blocking=False):
            self._count_drop()
            return False

        now = self._clock()
        if self._last_start is not None and now - self._last_start < self.min_interval_s:
            self._busy.release()
            self._count_drop()
            return False

        self._last_start = now
        return True

    def leave(self) -> None:
        self._busy.release()

    def _count_drop(self) -> None:
        with self._counter_lock:
            self._dropped += 1


class DetectionPipeline:
    """
    Plug-and-play pipeline: letterbox -> inference -> decode/threshold/Soft-NMS -> tracker.

    The pipeline expects BGR images (OpenCV-style) as `np.ndarray` and returns a
    FrameResult with stable detections in original image coordinates.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], Any],
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        letterbox_cfg: LetterboxConfig = LetterboxConfig(),
        post_cfg: PostConfig = PostConfig(),
        tracker_cfg: TrackerConfig = TrackerConfig(),
        gate: Optional[FrameGate] = None,
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.letterbox_cfg = letterbox_cfg
        self.post = DetectionPostprocessor(post_cfg)
        self.tracker = DetectionTracker(tracker_cfg)
        self.gate = gate if gate is not None else FrameGate()

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        if image_bgr is None or not hasattr(image_bgr, "shape"):
            raise TypeError("image_bgr must be a NumPy array (BGR).")
        if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

        orig_h, orig_w = image_bgr.shape[:2]
        img, params = letterbox(image_bgr, target=self.letterbox_cfg.size, color=self.letterbox_cfg.color)

        # BGR -> RGB, normalize, HWC -> CHW, add batch
        blob = img[:, :, ::-1].astype(np.float32) / 255.0
        blob = np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])

        return PreprocessResult(blob=blob, image_size=(orig_w, orig_h), letterbox=params)

    def process_output(
        self,
        preds: Any,
        letterbox: LetterboxParams,
        image_size: Tuple[int, int],
    ) -> FrameResult:
        """
        Postprocess one model output and advance the tracker by one frame.

        A failing postprocess counts as a frame with no detections; MemoryError is re-raised
        so the caller can skip the frame.
        """
        try:
            detections = self.post.process(preds, letterbox, image_size)
        except MemoryError:
            raise
        except Exception:
            logger.exception("Postprocess failed; treating frame as empty")
            detections = []

        stable = self.tracker.update(detections)
        stats = self.tracker.statistics()
        return FrameResult(
            detections=stable,
            active_tracks=stats.total_tracks,
            avg_confidence=stats.avg_confidence,
        )

    def __call__(self, image_bgr: np.ndarray) -> FrameResult:
        prep = self.preprocess(image_bgr)
        preds = self._infer_fn(prep.blob)
        return self.process_output(preds, prep.letterbox, prep.image_size)

    def submit(self, image_bgr: np.ndarray) -> Optional[FrameResult]:
        """
        Run one cycle if the gate admits the frame; returns None when the frame is dropped.
        """
        if not self.gate.try_enter():
            return None
        try:
            return self(image_bgr)
        finally:
            self.gate.leave()

    def reset(self) -> None:
        """Forget all tracks, e.g. after a scene change."""
        self.tracker.clear()


def load_pipeline(
    model_path: PathLike,
    *,
    letterbox_cfg: LetterboxConfig = LetterboxConfig(),
    post_cfg: PostConfig = PostConfig(),
    tracker_cfg: TrackerConfig = TrackerConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
    min_interval_s: float = 0.05,
) -> DetectionPipeline:
    """
    Create a pipeline for an ONNX detector on disk.

    Typical usage:
        pipe = load_pipeline("models/yolo11n.onnx")
        result = pipe.submit(frame)  # None when the frame was dropped
    """

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    resolved = Path(model_path).expanduser().resolve()
    if resolved.suffix.lower() != ".onnx":
        raise ValueError(f"Expected an .onnx model, got '{resolved.suffix}'.")

    ort_backend = OnnxRuntimeBackend(
        resolved,
        OnnxRuntimeBackendConfig(
            providers=onnx_providers,
            input_name=onnx_input_name,
            output_name=onnx_output_name,
        ),
    )
    logger.info("Loaded %s with providers %s", resolved.name, ", ".join(ort_backend.providers_in_use))
    return DetectionPipeline(
        ort_backend.infer,
        backend=ort_backend,
        backend_name="onnxruntime",
        letterbox_cfg=letterbox_cfg,
        post_cfg=post_cfg,
        tracker_cfg=tracker_cfg,
        gate=FrameGate(min_interval_s),
    )
