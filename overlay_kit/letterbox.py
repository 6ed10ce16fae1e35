from typing import Tuple

import numpy as np

from .types import LetterboxParams


def compute_letterbox(width: int, height: int, target: int = 640) -> Tuple[LetterboxParams, Tuple[int, int]]:
    """
    Geometry for fitting a (width, height) image into a centred `target` square.

    Returns:
        params: scale and left/top padding, as consumed by the decoder
        resized: (new_w, new_h) of the scaled image before padding
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image size must be positive, got {(width, height)}")
    if target <= 0:
        raise ValueError("target must be > 0")

    scale = min(target / width, target / height)
    new_w, new_h = int(width * scale), int(height * scale)
    pad_x = (target - new_w) // 2
    pad_y = (target - new_h) // 2
    return LetterboxParams(scale=scale, pad_x=pad_x, pad_y=pad_y), (new_w, new_h)


def letterbox(
    image: np.ndarray,
    target: int = 640,
    color: Tuple[int, int, int] = (114, 114, 114),
) -> Tuple[np.ndarray, LetterboxParams]:
    """
    Resize with preserved aspect ratio and pad to a `target` x `target` square.

    Returns:
        padded: resized + padded image
        params: LetterboxParams needed to map model boxes back to `image`
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    h, w = image.shape[:2]
    params, (new_w, new_h) = compute_letterbox(w, h, target)

    if (w, h) != (new_w, new_h):
        image = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_LINEAR)

    top, left = params.pad_y, params.pad_x
    bottom = target - new_h - top
    right = target - new_w - left
    padded = cv2.copyMakeBorder(image, top, bottom, left, right, cv2.BORDER_CONSTANT, value=color)

    return padded, params
