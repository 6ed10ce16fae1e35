import unittest

import numpy as np

from overlay_kit.letterbox import compute_letterbox, letterbox

try:
    import cv2  # noqa: F401

    HAS_CV2 = True
except ImportError:  # pragma: no cover
    HAS_CV2 = False


class TestComputeLetterbox(unittest.TestCase):
    def test_landscape(self) -> None:
        params, resized = compute_letterbox(1280, 720, 640)
        self.assertEqual(resized, (640, 360))
        self.assertEqual((params.scale, params.pad_x, params.pad_y), (0.5, 0, 140))

    def test_portrait(self) -> None:
        params, resized = compute_letterbox(480, 640, 640)
        self.assertEqual(resized, (480, 640))
        self.assertEqual((params.scale, params.pad_x, params.pad_y), (1.0, 80, 0))

    def test_odd_padding_rounds_down(self) -> None:
        params, resized = compute_letterbox(640, 481, 640)
        self.assertEqual(resized, (640, 481))
        self.assertEqual(params.pad_y, 79)

    def test_invalid_size(self) -> None:
        with self.assertRaises(ValueError):
            compute_letterbox(0, 480)


@unittest.skipUnless(HAS_CV2, "OpenCV not installed")
class TestLetterboxImage(unittest.TestCase):
    def test_padded_square(self) -> None:
        image = np.full((360, 640, 3), 255, dtype=np.uint8)
        padded, params = letterbox(image, target=320)
        self.assertEqual(padded.shape, (320, 320, 3))
        self.assertEqual(params.pad_y, 70)
        self.assertTrue(np.all(padded[0, 0] == 114))
        self.assertTrue(np.all(padded[160, 160] == 255))


if __name__ == "__main__":
    unittest.main()
