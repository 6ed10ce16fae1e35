from __future__ import annotations

from typing import Any, Optional, Sequence

import numpy as np

from .types import RawOutput


def _to_numpy(value: Any) -> np.ndarray:
    # torch tensors (and similar) must leave the autograd graph / device first.
    if hasattr(value, "detach"):
        value = value.detach()
    if hasattr(value, "cpu"):
        value = value.cpu()
    if hasattr(value, "numpy") and not isinstance(value, np.ndarray):
        value = value.numpy()

    try:
        arr = np.asarray(value)
    except ValueError as exc:
        # NumPy refuses ragged nested sequences.
        raise ValueError("Model output is ragged; expected a rectangular array.") from exc

    if arr.dtype == object:
        raise ValueError("Model output is ragged or contains non-numeric values.")
    if arr.dtype.kind in "biu":
        arr = arr.astype(np.float64)
    elif arr.dtype.kind != "f":
        raise ValueError(f"Unsupported model output dtype: {arr.dtype}")
    return arr


def as_raw_output(value: Any, shape: Optional[Sequence[int]] = None) -> RawOutput:
    """
    Normalise any backend output into a flat buffer + shape.

    Accepted inputs:
    - RawOutput (returned unchanged unless `shape` overrides it)
    - NumPy arrays of any floating / integer dtype
    - nested lists/tuples (e.g. [batch][features][predictions])
    - framework tensors exposing .detach()/.cpu()/.numpy()
    - a flat sequence together with an explicit `shape`

    Floating dtypes are preserved; integer and bool buffers become float64.
    The element count is not checked against `shape` here; the decoder rejects
    mismatches as an unsupported frame.
    """

    if isinstance(value, RawOutput):
        if shape is None:
            return value
        return RawOutput(buffer=value.buffer, shape=tuple(int(d) for d in shape))

    arr = _to_numpy(value)
    resolved = tuple(int(d) for d in shape) if shape is not None else tuple(int(d) for d in arr.shape)

    flat = arr.reshape(-1)
    # Borrowed, not owned: callers' buffers must not be written through this view.
    flat = flat.view()
    flat.flags.writeable = False
    return RawOutput(buffer=flat, shape=resolved)
