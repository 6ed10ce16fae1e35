import unittest

from overlay_kit.tracker import DetectionTracker, TrackerConfig, smooth_box
from overlay_kit.types import BoundingBox, Detection


def _det(left, top, right, bottom, cls=0, score=0.8):
    return Detection(box=BoundingBox(left, top, right, bottom), class_index=cls, confidence=score)


PERSON = _det(100, 100, 200, 300, cls=0, score=0.8)
CUP = _det(400, 50, 450, 120, cls=41, score=0.6)


class TestDetectionTrackerStability(unittest.TestCase):
    def test_repeated_detection_is_emitted_from_second_frame(self) -> None:
        tracker = DetectionTracker()
        self.assertEqual(tracker.update([PERSON]), [])
        self.assertEqual(tracker.update([PERSON]), [PERSON])
        self.assertEqual(tracker.update([PERSON]), [PERSON])

        (track,) = tracker.tracks
        self.assertEqual(track.consecutive_matched_frames, 3)
        self.assertEqual(track.frames_since_last_match, 0)
        self.assertEqual(len(track.history), 2)

    def test_single_frame_flicker_is_never_emitted(self) -> None:
        tracker = DetectionTracker()
        outputs = [tracker.update(frame) for frame in ([CUP], [PERSON], [PERSON], [PERSON])]
        for out in outputs:
            self.assertNotIn(CUP.class_index, [d.class_index for d in out])
        self.assertEqual([t.class_index for t in tracker.tracks], [PERSON.class_index])

    def test_flicker_followed_by_empty_frame(self) -> None:
        tracker = DetectionTracker()
        self.assertEqual(tracker.update([CUP]), [])
        self.assertEqual(tracker.update([]), [])
        self.assertEqual(tracker.active_track_count, 0)

    def test_class_change_spawns_new_track(self) -> None:
        tracker = DetectionTracker()
        tracker.update([PERSON])
        same_place_dog = _det(100, 100, 200, 300, cls=16, score=0.7)
        self.assertEqual(tracker.update([same_place_dog]), [])

        first, second = tracker.tracks
        self.assertEqual((first.track_id, first.class_index), (0, 0))
        self.assertEqual((second.track_id, second.class_index), (1, 16))
        self.assertEqual(first.consecutive_matched_frames, 1)
        self.assertEqual(second.consecutive_matched_frames, 1)

    def test_empty_frame_resets_all_tracks(self) -> None:
        tracker = DetectionTracker()
        tracker.update([PERSON])
        tracker.update([PERSON])
        self.assertEqual(tracker.update([]), [])
        self.assertEqual(tracker.active_track_count, 0)

        self.assertEqual(tracker.update([PERSON]), [])
        (track,) = tracker.tracks
        self.assertEqual(track.consecutive_matched_frames, 1)
        # Ids are never reused.
        self.assertEqual(track.track_id, 1)


class TestDetectionTrackerMatching(unittest.TestCase):
    def test_matched_box_is_smoothed(self) -> None:
        tracker = DetectionTracker()
        tracker.update([PERSON])
        moved = _det(110, 100, 210, 300, score=0.9)
        (out,) = tracker.update([moved])

        self.assertAlmostEqual(out.box.left, 0.85 * 110 + 0.15 * 100)
        self.assertAlmostEqual(out.box.right, 0.85 * 210 + 0.15 * 200)
        self.assertAlmostEqual(out.box.top, 100)
        self.assertEqual(out.confidence, 0.9)
        self.assertEqual(out.class_index, 0)

    def test_low_iou_does_not_match(self) -> None:
        tracker = DetectionTracker()
        tracker.update([_det(0, 0, 100, 100)])
        tracker.update([_det(70, 70, 170, 170)])  # IoU ~ 0.05
        self.assertEqual([t.consecutive_matched_frames for t in tracker.tracks], [1, 1])

    def test_track_matches_at_most_once_per_frame(self) -> None:
        tracker = DetectionTracker()
        tracker.update([PERSON])
        out = tracker.update([PERSON, PERSON])
        self.assertEqual(len(out), 1)
        self.assertEqual(sorted(t.consecutive_matched_frames for t in tracker.tracks), [1, 2])

    def test_best_iou_wins(self) -> None:
        tracker = DetectionTracker()
        tracker.update([_det(0, 0, 100, 100), _det(40, 0, 140, 100)])
        tracker.update([_det(38, 0, 138, 100)])
        by_id = {t.track_id: t for t in tracker.tracks}
        self.assertEqual(by_id[1].consecutive_matched_frames, 2)
        self.assertEqual(by_id[0].consecutive_matched_frames, 1)

    def test_track_survives_one_missed_frame(self) -> None:
        tracker = DetectionTracker()
        tracker.update([PERSON])
        tracker.update([CUP])
        out = tracker.update([PERSON])
        self.assertEqual([d.class_index for d in out], [PERSON.class_index])
        person_track = tracker.tracks[0]
        self.assertEqual(person_track.track_id, 0)
        self.assertEqual(person_track.consecutive_matched_frames, 2)

    def test_track_removed_after_missing_budget(self) -> None:
        tracker = DetectionTracker()
        tracker.update([PERSON])
        tracker.update([CUP])
        tracker.update([CUP])
        self.assertEqual([t.class_index for t in tracker.tracks], [CUP.class_index])

    def test_reset_can_be_disabled(self) -> None:
        tracker = DetectionTracker(TrackerConfig(reset_after_empty_frames=0))
        tracker.update([PERSON])
        tracker.update([PERSON])
        self.assertEqual(tracker.update([]), [PERSON])
        self.assertEqual(tracker.update([]), [])
        self.assertEqual(tracker.active_track_count, 0)


class TestDetectionTrackerBookkeeping(unittest.TestCase):
    def test_ids_keep_increasing_after_clear(self) -> None:
        tracker = DetectionTracker()
        tracker.update([PERSON, CUP])
        tracker.clear()
        tracker.update([PERSON])
        self.assertEqual([t.track_id for t in tracker.tracks], [2])

    def test_statistics(self) -> None:
        tracker = DetectionTracker()
        self.assertEqual(tracker.statistics().avg_confidence, 0.0)
        for _ in range(3):
            tracker.update([PERSON, CUP])
        stats = tracker.statistics()
        self.assertEqual(stats.total_tracks, 2)
        self.assertEqual(stats.stable_tracks, 2)
        self.assertAlmostEqual(stats.avg_confidence, (0.8 + 0.6) / 2)

    def test_smooth_box_alpha_one_adopts_new_box(self) -> None:
        old = BoundingBox(0, 0, 10, 10)
        new = BoundingBox(5, 5, 20, 20)
        self.assertEqual(smooth_box(old, new, 1.0), new)

    def test_history_follows_configured_size(self) -> None:
        tracker = DetectionTracker(TrackerConfig(history_size=3))
        for _ in range(5):
            tracker.update([PERSON])
        (track,) = tracker.tracks
        self.assertEqual(track.history.maxlen, 3)
        self.assertEqual(list(track.history), [PERSON] * 3)

    def test_config_validation(self) -> None:
        with self.assertRaises(ValueError):
            TrackerConfig(smoothing_alpha=0.0)
        with self.assertRaises(ValueError):
            TrackerConfig(max_frames_missing=-1)


if __name__ == "__main__":
    unittest.main()
