import json
import tempfile
import unittest
from pathlib import Path

from overlay_kit.config import OverlayConfig, load_overlay_config, overlay_config_from_dict


class TestOverlayConfig(unittest.TestCase):
    def _write(self, payload) -> Path:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        path = Path(tmp.name) / "overlay.json"
        path.write_text(json.dumps(payload) if not isinstance(payload, str) else payload, encoding="utf-8")
        return path

    def test_load_partial_config_keeps_defaults(self) -> None:
        cfg = load_overlay_config(self._write({"base_threshold": 0.45, "max_frames_missing": 2}))
        self.assertEqual(cfg.base_threshold, 0.45)
        self.assertEqual(cfg.max_frames_missing, 2)
        self.assertEqual(cfg.smoothing_alpha, 0.85)

    def test_component_configs(self) -> None:
        cfg = OverlayConfig(low_threshold=0.25, base_threshold=0.35, soft_nms_sigma=0.3, model_input_size=320)
        post = cfg.to_post_config()
        self.assertEqual(post.decoder.score_floor, 0.25)
        self.assertEqual(post.thresholds.base, 0.35)
        self.assertAlmostEqual(post.soft_nms_config().keep_threshold, 0.175)
        self.assertEqual(post.sigma, 0.3)
        self.assertEqual(cfg.to_letterbox_config().size, 320)
        self.assertFalse(hasattr(post.decoder, "model_input_size"))
        self.assertEqual(cfg.to_tracker_config().iou_match_threshold, 0.35)

    def test_unknown_keys_rejected(self) -> None:
        with self.assertRaises(ValueError):
            overlay_config_from_dict({"sigma": 0.5})

    def test_types_are_checked(self) -> None:
        with self.assertRaises(ValueError):
            overlay_config_from_dict({"max_frames_missing": 1.5})
        with self.assertRaises(ValueError):
            overlay_config_from_dict({"base_threshold": True})
        with self.assertRaises(ValueError):
            overlay_config_from_dict(["base_threshold"])

    def test_ranges_are_checked(self) -> None:
        with self.assertRaises(ValueError):
            OverlayConfig(low_threshold=0.5, base_threshold=0.4)
        with self.assertRaises(ValueError):
            OverlayConfig(smoothing_alpha=1.5)

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_overlay_config(Path("/nonexistent/overlay.json"))

    def test_invalid_json(self) -> None:
        with self.assertRaises(ValueError):
            load_overlay_config(self._write("{not json"))


if __name__ == "__main__":
    unittest.main()
