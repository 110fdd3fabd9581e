import argparse
import logging
from pathlib import Path

import cv2

from foofinder_kit import (
    PipelineConfig,
    draw_detection,
    draw_ground_truth,
    draw_stats,
    load_class_names,
    load_pipeline,
    parse_yolo_labels,
)
from foofinder_live import setup_logging

logger = logging.getLogger("foofinder_live.model_test")


def read_image(path: str):
    img = cv2.imread(path)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {path}")
    return img


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run the detector on one test image and compare against its YOLO label file."
    )
    parser.add_argument("--image", required=True, help="Path to the test image.")
    parser.add_argument("--labels", default=None, help="YOLO label file (defaults to <image>.txt).")
    parser.add_argument("--model", default="Models/foofinder.onnx", help="Path to an ONNX model.")
    parser.add_argument("--metadata", default=None, help="Optional metadata.yaml with class names.")
    parser.add_argument("--layout", default="corner", choices=["corner", "center"], help="Raw output layout.")
    parser.add_argument("--conf", type=float, default=0.8, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for NMS.")
    parser.add_argument("--show", action="store_true", help="Show a window with the result.")
    parser.add_argument("--out", default=None, help="Optional output path for the annotated image.")
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    args = parser.parse_args()

    setup_logging(args.log_level)

    cfg_kwargs = {"confidence_threshold": args.conf, "iou_threshold": args.iou, "layout": args.layout}
    if args.metadata:
        cfg_kwargs["class_names"] = load_class_names(args.metadata)
    cfg = PipelineConfig(**cfg_kwargs)

    img = read_image(args.image)
    h, w = img.shape[:2]

    labels_path = Path(args.labels) if args.labels else Path(args.image).with_suffix(".txt")
    ground_truth = []
    if labels_path.exists():
        ground_truth = parse_yolo_labels(labels_path, w, h, cfg.class_names)
    else:
        logger.warning("No label file at %s; drawing detections only", labels_path)

    with load_pipeline(args.model, cfg=cfg) as pipeline:
        result = pipeline.run(img)

    if not result.ok:
        logger.error("Detection failed at %s stage: %s", result.stage.value, result.reason)
        return 1

    detection = result.detection
    vis = draw_ground_truth(img, ground_truth)
    vis = draw_detection(vis, detection)
    vis = draw_stats(vis, detection)

    if args.out:
        ok = cv2.imwrite(args.out, vis)
        if not ok:
            raise RuntimeError(f"Failed to write output image: {args.out}")

    if args.show:
        cv2.imshow("model test", vis)
        cv2.waitKey(0)
        cv2.destroyAllWindows()

    print(f"ground truth: {len(ground_truth)}  detected: {len(detection.bounding_boxes)}")
    for box in detection.bounding_boxes:
        print(box.class_name, round(box.confidence, 3), box.as_xyxy())

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
