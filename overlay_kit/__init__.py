"""
Detection decoding, suppression and temporal tracking for live overlays.

Turns raw detector output (flat buffer + shape) into a stable, jitter-free list
of labelled boxes. The core is NumPy only; OpenCV is needed for letterboxing and
ONNX Runtime for the bundled inference backend.
"""

from .types import BoundingBox, Detection, LetterboxParams, RawOutput
from .metadata import COCO_CLASS_NAMES, class_name_for
from .tensor import as_raw_output
from .letterbox import compute_letterbox, letterbox
from .decoder import DecoderConfig, TensorDecoder
from .threshold import ThresholdConfig, apply_adaptive_threshold, select_threshold
from .nms import SoftNMSConfig, box_iou, soft_nms
from .tracker import DetectionTracker, Track, TrackerConfig, TrackStatistics
from .postprocess import DetectionPostprocessor, PostConfig
from .runtime import DetectionPipeline, FrameGate, FrameResult, LetterboxConfig, load_pipeline
from .config import OverlayConfig, load_overlay_config

__all__ = [
    "BoundingBox",
    "Detection",
    "LetterboxParams",
    "RawOutput",
    "COCO_CLASS_NAMES",
    "class_name_for",
    "as_raw_output",
    "compute_letterbox",
    "letterbox",
    "DecoderConfig",
    "TensorDecoder",
    "ThresholdConfig",
    "apply_adaptive_threshold",
    "select_threshold",
    "SoftNMSConfig",
    "box_iou",
    "soft_nms",
    "DetectionTracker",
    "Track",
    "TrackerConfig",
    "TrackStatistics",
    "DetectionPostprocessor",
    "PostConfig",
    "DetectionPipeline",
    "FrameGate",
    "FrameResult",
    "LetterboxConfig",
    "load_pipeline",
    "OverlayConfig",
    "load_overlay_config",
]
