from __future__ import annotations

import argparse
import statistics
import time
from dataclasses import dataclass
from typing import Dict, List

import numpy as np

from overlay_kit import (
    DetectionTracker,
    LetterboxParams,
    OverlayConfig,
    TensorDecoder,
    apply_adaptive_threshold,
    as_raw_output,
    load_overlay_config,
    soft_nms,
)


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p90_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    if q < 0.0 or q > 100.0:
        raise ValueError("q must be in [0, 100].")
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    if lo == hi:
        return float(sorted_values[lo])
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def _summarize_ms(values_s: List[float]) -> TimingSummary:
    ms_sorted = sorted(v * 1000.0 for v in values_s)
    return TimingSummary(
        n=len(ms_sorted),
        mean_ms=float(statistics.fmean(ms_sorted)) if ms_sorted else 0.0,
        p50_ms=_percentile(ms_sorted, 50.0) if ms_sorted else 0.0,
        p90_ms=_percentile(ms_sorted, 90.0) if ms_sorted else 0.0,
        p95_ms=_percentile(ms_sorted, 95.0) if ms_sorted else 0.0,
    )


def _format_summary(label: str, s: TimingSummary) -> str:
    return (
        f"{label}: n={s.n} mean={s.mean_ms:.3f}ms p50={s.p50_ms:.3f}ms "
        f"p90={s.p90_ms:.3f}ms p95={s.p95_ms:.3f}ms"
    )


def _synthetic_frame(
    rng: np.random.Generator,
    n_predictions: int,
    n_objects: int,
    n_classes: int,
    size: int,
    feature_major: bool,
) -> np.ndarray:
    """
    Detector-like output: mostly background, plus clusters of jittered candidates around
    `n_objects` objects (the duplicates Soft-NMS has to resolve).
    """
    feats = np.zeros((4 + n_classes, n_predictions), dtype=np.float32)
    feats[0:2, :] = rng.uniform(0, size, size=(2, n_predictions))
    feats[2:4, :] = rng.uniform(4, 60, size=(2, n_predictions))
    feats[4:, :] = rng.uniform(0.0, 0.1, size=(n_classes, n_predictions))

    per_object = 8
    for obj in range(n_objects):
        centre = rng.uniform(80, size - 80, size=2)
        wh = rng.uniform(40, 150, size=2)
        cls = int(rng.integers(0, n_classes))
        for k in range(per_object):
            idx = (obj * per_object + k) % n_predictions
            feats[0:2, idx] = centre + rng.normal(0, 3, size=2)
            feats[2:4, idx] = wh + rng.normal(0, 3, size=2)
            feats[4 + cls, idx] = rng.uniform(0.35, 0.95)

    out = feats if feature_major else feats.T
    return out[None, ...]


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Benchmark decode / adaptive threshold / Soft-NMS / tracking latency on synthetic detector output."
    )
    parser.add_argument("--config", default=None, help="Optional overlay config JSON.")
    parser.add_argument("--predictions", type=int, default=8400, help="Predictions per frame (e.g. 8400).")
    parser.add_argument("--objects", type=int, default=6, help="Objects per frame (each with jittered duplicates).")
    parser.add_argument(
        "--layout",
        choices=("feature-major", "prediction-major"),
        default="feature-major",
        help="Memory layout of the synthetic output.",
    )
    parser.add_argument("--frames", type=int, default=200, help="Recorded frames.")
    parser.add_argument("--warmup", type=int, default=10, help="Warmup frames to run but not record.")
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    if args.predictions < 1:
        raise ValueError("--predictions must be >= 1")
    if args.objects < 0:
        raise ValueError("--objects must be >= 0")
    if args.frames < 1:
        raise ValueError("--frames must be >= 1")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")

    cfg = load_overlay_config(args.config) if args.config else OverlayConfig()
    post_cfg = cfg.to_post_config()
    decoder = TensorDecoder(post_cfg.decoder)
    nms_cfg = post_cfg.soft_nms_config()
    tracker = DetectionTracker(cfg.to_tracker_config())

    rng = np.random.default_rng(args.seed)
    size = cfg.model_input_size
    params = LetterboxParams(scale=1.0, pad_x=0, pad_y=0)
    frame = _synthetic_frame(
        rng, args.predictions, args.objects, cfg.num_classes, size, args.layout == "feature-major"
    )

    timings: Dict[str, List[float]] = {"decode": [], "threshold": [], "soft_nms": [], "track": []}
    counts: List[int] = []

    for i in range(args.warmup + args.frames):
        raw = as_raw_output(frame)
        t0 = time.perf_counter()
        candidates = decoder.decode(raw, params, (size, size))
        t1 = time.perf_counter()
        kept, _ = apply_adaptive_threshold(candidates, post_cfg.thresholds)
        t2 = time.perf_counter()
        suppressed = soft_nms(kept, nms_cfg)
        t3 = time.perf_counter()
        stable = tracker.update(suppressed)
        t4 = time.perf_counter()

        if i < args.warmup:
            continue
        timings["decode"].append(t1 - t0)
        timings["threshold"].append(t2 - t1)
        timings["soft_nms"].append(t3 - t2)
        timings["track"].append(t4 - t3)
        counts.append(len(stable))

    for label, values in timings.items():
        print(_format_summary(label, _summarize_ms(values)))
    total = [sum(parts) for parts in zip(*timings.values())]
    print(_format_summary("total", _summarize_ms(total)))
    print(f"layout={args.layout} predictions={args.predictions} stable_detections_last={counts[-1]}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
