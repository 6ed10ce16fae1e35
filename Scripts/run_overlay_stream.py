from __future__ import annotations

import argparse
import logging
import time

import cv2

from overlay_kit import OverlayConfig, load_overlay_config, load_pipeline


def _open_capture(args: argparse.Namespace) -> cv2.VideoCapture:
    if args.video is not None:
        cap = cv2.VideoCapture(args.video)
        if not cap.isOpened():
            raise FileNotFoundError(f"Could not open video: {args.video}")
        return cap

    cam_index = 0 if args.webcam is None else int(args.webcam)
    cap = cv2.VideoCapture(cam_index)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open webcam index: {cam_index}")
    return cap


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the detection overlay chain on a video or webcam stream.")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")

    parser.add_argument("--model", default="Models/yolo11n.onnx", help="Path to an ONNX detector.")
    parser.add_argument("--config", default=None, help="Optional overlay config JSON.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--min-interval-ms", type=float, default=50.0, help="Minimum time between processed frames.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N processed frames (0 = no limit).")
    parser.add_argument("--log-level", default="INFO", help="Python logging level.")
    args = parser.parse_args()

    if args.min_interval_ms < 0:
        raise ValueError("--min-interval-ms must be >= 0")
    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = load_overlay_config(args.config) if args.config else OverlayConfig()
    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    pipeline = load_pipeline(
        args.model,
        letterbox_cfg=cfg.to_letterbox_config(),
        post_cfg=cfg.to_post_config(),
        tracker_cfg=cfg.to_tracker_config(),
        onnx_providers=onnx_providers,
        min_interval_s=args.min_interval_ms / 1000.0,
    )

    cap = _open_capture(args)
    frames_read = 0
    processed = 0
    try:
        while True:
            ok, frame = cap.read()
            if not ok or frame is None:
                break
            frames_read += 1

            t0 = time.perf_counter()
            try:
                result = pipeline.submit(frame)
            except MemoryError:
                print(f"frame {frames_read}: out of memory, skipped")
                continue
            if result is None:
                continue
            processed += 1
            elapsed_ms = (time.perf_counter() - t0) * 1000.0

            labels = ", ".join(f"{d.class_name} {d.confidence:.2f}" for d in result.detections)
            print(
                f"frame {frames_read}: {len(result.detections)} stable "
                f"(tracks={result.active_tracks} avg_conf={result.avg_confidence:.2f} {elapsed_ms:.1f}ms) {labels}"
            )

            if args.max_frames and processed >= args.max_frames:
                break
    finally:
        cap.release()

    print(f"frames_read={frames_read} processed={processed} dropped={pipeline.gate.dropped}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
