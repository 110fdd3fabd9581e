import argparse
from pathlib import Path

from foofinder_kit import PipelineConfig, load_pipeline
from foofinder_live import load_detector_profile, run_live, setup_logging


def _parse_size(value: str):
    try:
        w, h = (int(v) for v in value.lower().split("x", 1))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {value!r}") from exc
    if w < 1 or h < 1:
        raise argparse.ArgumentTypeError("size must be positive")
    return w, h


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the FooFinder detector on a live camera or video file.")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")
    parser.add_argument("--profile", default=None, help="Detector profile JSON (model, layout, thresholds).")
    parser.add_argument("--model", default=None, help="Path to an ONNX model. Overrides the profile.")
    parser.add_argument("--layout", default=None, choices=["corner", "center"], help="Raw output layout.")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold (default 0.8).")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS (default 0.45).")
    parser.add_argument("--rotation", type=int, default=0, help="Clockwise sensor->display rotation (0/90/180/270).")
    parser.add_argument("--capture-size", type=_parse_size, default=None, help="Requested webcam size, e.g. 640x480.")
    parser.add_argument("--display-size", type=_parse_size, default=None, help="Preview size, e.g. 1080x1440.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--no-show", action="store_true", help="Do not open a preview window.")
    parser.add_argument("--out", default=None, help="Optional output video path for the annotated preview.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = no limit).")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...).")
    args = parser.parse_args()

    setup_logging(args.log_level)

    if args.profile:
        profile = load_detector_profile(Path(args.profile))
        base_cfg = profile.pipeline_config()
        model_path = profile.model_path
    else:
        base_cfg = PipelineConfig()
        model_path = "Models/foofinder.onnx"

    cfg = PipelineConfig(
        confidence_threshold=base_cfg.confidence_threshold if args.conf is None else args.conf,
        iou_threshold=base_cfg.iou_threshold if args.iou is None else args.iou,
        layout=base_cfg.layout if args.layout is None else args.layout,
        class_names=base_cfg.class_names,
        input_size=base_cfg.input_size,
        channels_first=base_cfg.channels_first,
    )

    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    pipeline = load_pipeline(args.model or model_path, cfg=cfg, onnx_providers=onnx_providers)

    webcam = args.webcam
    if args.video is None and webcam is None:
        webcam = 0

    run_live(
        pipeline,
        video=args.video,
        webcam=webcam,
        capture_size=args.capture_size,
        rotation_degrees=args.rotation,
        display_size=args.display_size,
        show=not args.no_show,
        out=args.out,
        max_frames=args.max_frames,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
