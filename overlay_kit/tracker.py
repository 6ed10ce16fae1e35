from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Sequence, Set, Tuple

from .nms import box_iou
from .types import BoundingBox, Detection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackerConfig:
    iou_match_threshold: float = 0.35
    # Weight of the new box in the EMA; high values favour responsiveness.
    smoothing_alpha: float = 0.85
    # A track unmatched for more than this many frames is removed.
    max_frames_missing: int = 1
    # Tracks are emitted once matched on this many consecutive frames.
    min_consecutive_frames: int = 2
    history_size: int = 2
    # Clear every track after this many consecutive empty frames (0 disables).
    reset_after_empty_frames: int = 1
    stable_track_frames: int = 3

    def __post_init__(self) -> None:
        if not 0.0 < self.iou_match_threshold <= 1.0:
            raise ValueError("iou_match_threshold must be within (0, 1]")
        if not 0.0 < self.smoothing_alpha <= 1.0:
            raise ValueError("smoothing_alpha must be within (0, 1]")
        if self.max_frames_missing < 0:
            raise ValueError("max_frames_missing must be >= 0")
        if self.min_consecutive_frames < 1:
            raise ValueError("min_consecutive_frames must be >= 1")
        if self.history_size < 1:
            raise ValueError("history_size must be >= 1")
        if self.reset_after_empty_frames < 0:
            raise ValueError("reset_after_empty_frames must be >= 0")
        if self.stable_track_frames < 1:
            raise ValueError("stable_track_frames must be >= 1")


@dataclass
class Track:
    track_id: int
    detection: Detection
    history: Deque[Detection]
    frames_since_last_match: int = 0
    consecutive_matched_frames: int = 1

    @property
    def class_index(self) -> int:
        return self.detection.class_index


@dataclass(frozen=True)
class TrackStatistics:
    total_tracks: int
    stable_tracks: int
    avg_confidence: float


def smooth_box(old: BoundingBox, new: BoundingBox, alpha: float) -> BoundingBox:
    """
    Componentwise exponential moving average: alpha * new + (1 - alpha) * old.
    """
    # Written as old + alpha * (new - old) so an unchanged box stays bit-identical.
    return BoundingBox(
        left=old.left + alpha * (new.left - old.left),
        top=old.top + alpha * (new.top - old.top),
        right=old.right + alpha * (new.right - old.right),
        bottom=old.bottom + alpha * (new.bottom - old.bottom),
    )


class DetectionTracker:
    """
    IoU-based temporal tracker that stabilises per-frame detections.

    Logic:
      - Every existing track ages by one frame.
      - Each detection (input order) matches the unmatched same-class track with the
        highest IoU >= iou_match_threshold; a track matches at most once per frame.
      - Matched tracks get an EMA-smoothed box and the new class/confidence.
      - Unmatched detections open new tracks.
      - Tracks unmatched for more than max_frames_missing frames are removed.
      - Only tracks matched on >= min_consecutive_frames frames are emitted, which
        hides single-frame flicker.
      - An empty frame clears everything (see reset_after_empty_frames) so the
        overlay goes blank at once instead of fading out.

    Not thread-safe: one update at a time.
    """

    def __init__(self, cfg: TrackerConfig = TrackerConfig()) -> None:
        self.cfg = cfg
        self._tracks: Dict[int, Track] = {}
        self._next_id = 0
        self._empty_streak = 0

    @property
    def tracks(self) -> Tuple[Track, ...]:
        return tuple(self._tracks[tid] for tid in sorted(self._tracks))

    @property
    def active_track_count(self) -> int:
        return len(self._tracks)

    def update(self, detections: Sequence[Detection]) -> List[Detection]:
        if not detections:
            return self._update_empty()
        self._empty_streak = 0

        for track in self._tracks.values():
            track.frames_since_last_match += 1

        matched: Set[int] = set()
        unmatched: List[Detection] = []
        for det in detections:
            track = self._best_match(det, matched)
            if track is None:
                unmatched.append(det)
                continue
            self._update_track(track, det)
            matched.add(track.track_id)

        for det in unmatched:
            self._create_track(det)

        self._remove_stale()
        return self._emit()

    def clear(self) -> None:
        """Drop every track. Track ids keep increasing afterwards."""
        if self._tracks:
            logger.debug("Clearing %d tracks", len(self._tracks))
        self._tracks.clear()
        self._empty_streak = 0

    def statistics(self) -> TrackStatistics:
        tracks = list(self._tracks.values())
        stable = sum(1 for t in tracks if t.consecutive_matched_frames >= self.cfg.stable_track_frames)
        avg = sum(t.detection.confidence for t in tracks) / len(tracks) if tracks else 0.0
        return TrackStatistics(total_tracks=len(tracks), stable_tracks=stable, avg_confidence=float(avg))

    # ------------------------------------------------------------------ #
    # Track arena
    # ------------------------------------------------------------------ #
    def _update_empty(self) -> List[Detection]:
        self._empty_streak += 1
        if self.cfg.reset_after_empty_frames and self._empty_streak >= self.cfg.reset_after_empty_frames:
            self.clear()
            return []

        for track in self._tracks.values():
            track.frames_since_last_match += 1
        self._remove_stale()
        return self._emit()

    def _best_match(self, det: Detection, matched: Set[int]) -> Optional[Track]:
        best: Optional[Track] = None
        best_iou = self.cfg.iou_match_threshold
        for track in self._tracks.values():
            if track.track_id in matched or track.class_index != det.class_index:
                continue
            iou = box_iou(track.detection.box, det.box)
            if iou >= best_iou and (best is None or iou > best_iou):
                best, best_iou = track, iou
        return best

    def _create_track(self, det: Detection) -> Track:
        track_id = self._next_id
        self._next_id += 1
        track = Track(
            track_id=track_id,
            detection=det,
            history=deque(maxlen=self.cfg.history_size),
        )
        self._tracks[track_id] = track
        logger.debug("New track %d: %s (%.2f)", track_id, det.class_name, det.confidence)
        return track

    def _update_track(self, track: Track, det: Detection) -> None:
        track.history.append(det)
        track.detection = Detection(
            box=smooth_box(track.detection.box, det.box, self.cfg.smoothing_alpha),
            class_index=det.class_index,
            confidence=det.confidence,
        )
        track.frames_since_last_match = 0
        track.consecutive_matched_frames += 1

    def _remove_stale(self) -> None:
        stale = [tid for tid, t in self._tracks.items() if t.frames_since_last_match > self.cfg.max_frames_missing]
        for tid in stale:
            logger.debug("Removing stale track %d (%s)", tid, self._tracks[tid].detection.class_name)
            del self._tracks[tid]

    def _emit(self) -> List[Detection]:
        return [
            self._tracks[tid].detection
            for tid in sorted(self._tracks)
            if self._tracks[tid].consecutive_matched_frames >= self.cfg.min_consecutive_frames
        ]
