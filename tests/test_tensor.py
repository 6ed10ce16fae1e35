import unittest

import numpy as np

from overlay_kit.tensor import as_raw_output
from overlay_kit.types import RawOutput


class _FakeTensor:
    """Mimics the detach/cpu/numpy chain of framework tensors."""

    def __init__(self, arr: np.ndarray) -> None:
        self._arr = arr

    def detach(self) -> "_FakeTensor":
        return self

    def cpu(self) -> "_FakeTensor":
        return self

    def numpy(self) -> np.ndarray:
        return self._arr


class TestAsRawOutput(unittest.TestCase):
    def test_numpy_array_keeps_float_dtype(self) -> None:
        raw = as_raw_output(np.zeros((1, 84, 10), dtype=np.float32))
        self.assertEqual(raw.shape, (1, 84, 10))
        self.assertEqual(raw.buffer.ndim, 1)
        self.assertEqual(raw.buffer.dtype, np.float32)
        self.assertEqual(raw.size, 840)

    def test_nested_lists(self) -> None:
        raw = as_raw_output([[[1, 2, 3], [4, 5, 6]]])
        self.assertEqual(raw.shape, (1, 2, 3))
        self.assertEqual(raw.buffer.dtype, np.float64)
        self.assertEqual(raw.buffer.tolist(), [1.0, 2.0, 3.0, 4.0, 5.0, 6.0])

    def test_flat_buffer_with_explicit_shape(self) -> None:
        raw = as_raw_output([0.0] * 12, shape=(1, 3, 4))
        self.assertEqual(raw.shape, (1, 3, 4))
        self.assertEqual(raw.size, 12)

    def test_framework_tensor(self) -> None:
        raw = as_raw_output(_FakeTensor(np.ones((2, 5), dtype=np.float32)))
        self.assertEqual(raw.shape, (2, 5))

    def test_raw_output_passthrough(self) -> None:
        raw = RawOutput(buffer=np.zeros(6), shape=(2, 3))
        self.assertIs(as_raw_output(raw), raw)
        self.assertEqual(as_raw_output(raw, shape=(3, 2)).shape, (3, 2))

    def test_buffer_is_read_only(self) -> None:
        source = np.zeros((2, 3))
        raw = as_raw_output(source)
        with self.assertRaises(ValueError):
            raw.buffer[0] = 1.0
        self.assertTrue(source.flags.writeable)

    def test_ragged_and_non_numeric_rejected(self) -> None:
        with self.assertRaises(ValueError):
            as_raw_output([[1.0, 2.0], [3.0]])
        with self.assertRaises(ValueError):
            as_raw_output([["a", "b"]])


if __name__ == "__main__":
    unittest.main()
