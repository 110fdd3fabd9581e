import logging
import tempfile
import unittest
from pathlib import Path

import numpy as np

from foofinder_kit.labels import parse_yolo_labels
from foofinder_kit.metadata import class_name_for, load_class_names
from foofinder_kit.types import BoundingBox, CoordinateSpace, Detection, DetectionArea
from foofinder_kit.visualize import (
    draw_detection,
    draw_ground_truth,
    draw_stats,
    format_stats,
    scale_detection_to_canvas,
    style_for_class,
)
from foofinder_live.logging_utils import setup_logging


class _TempFileMixin:
    def _write(self, name: str, text: str) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / name
        path.write_text(text, encoding="utf-8")
        return path


class TestYoloLabels(_TempFileMixin, unittest.TestCase):
    def test_parse(self) -> None:
        path = self._write(
            "frame.txt",
            "0 0.5 0.5 0.2 0.4\n\nnot a label\n1 0.1 0.1 0 0.1\n1 0.25 0.75 0.5 0.5\n",
        )
        with self.assertLogs("foofinder_kit.labels", level="WARNING") as logs:
            boxes = parse_yolo_labels(path, 100, 200)
        self.assertEqual(len(logs.records), 2)
        self.assertEqual(len(boxes), 2)

        a, b = boxes
        self.assertAlmostEqual(a.start_x, 40.0)
        self.assertAlmostEqual(a.start_y, 60.0)
        self.assertAlmostEqual(a.width, 20.0)
        self.assertAlmostEqual(a.height, 80.0)
        self.assertEqual(a.confidence, 1.0)
        self.assertEqual(a.class_name, "foo")
        self.assertIs(a.space, CoordinateSpace.IMAGE)
        self.assertEqual(b.class_name, "not_foo")
        self.assertAlmostEqual(b.start_y, 100.0)

    def test_errors(self) -> None:
        with self.assertRaises(FileNotFoundError):
            parse_yolo_labels("/nonexistent/labels.txt", 10, 10)
        path = self._write("frame.txt", "0 0.5 0.5 0.2 0.2\n")
        with self.assertRaises(ValueError):
            parse_yolo_labels(path, 0, 10)


class TestMetadata(_TempFileMixin, unittest.TestCase):
    def test_load_class_names(self) -> None:
        path = self._write(
            "metadata.yaml",
            "description: foofinder\nnames:\n  0: foo\n  1: 'not_foo'\n  # comment\nimgsz:\n- 640\n",
        )
        self.assertEqual(load_class_names(str(path)), {0: "foo", 1: "not_foo"})

    def test_missing_names_block(self) -> None:
        path = self._write("metadata.yaml", "description: foofinder\nimgsz:\n- 640\n")
        self.assertEqual(load_class_names(str(path)), {})

    def test_names_block_ends_at_next_key(self) -> None:
        path = self._write("metadata.yaml", "names:\n  0: \"foo\"\nkpt_shape:\n  3: bar\n")
        self.assertEqual(load_class_names(str(path)), {0: "foo"})

    def test_class_name_fallback(self) -> None:
        self.assertEqual(class_name_for(0), "foo")
        self.assertEqual(class_name_for(9), "unknown")
        self.assertEqual(class_name_for(None), "unknown")
        self.assertEqual(class_name_for(2, {2: "bar"}), "bar")


def _detection(space: CoordinateSpace = CoordinateSpace.DISPLAY, **kwargs) -> Detection:
    boxes = (
        BoundingBox(10.0, 10.0, 20.0, 20.0, confidence=0.9, class_id=0, space=space),
        BoundingBox(40.0, 40.0, 10.0, 10.0, confidence=0.85, class_id=3, class_name="unknown", space=space),
    )
    return Detection(bounding_boxes=boxes, area=DetectionArea(0.0, 0.0, 60.0, 60.0, space=space), space=space, **kwargs)


class TestVisualize(unittest.TestCase):
    def test_format_stats(self) -> None:
        det = _detection(inference_ms=15, fps=12.34, raw_detections=5, after_nms_detections=3)
        self.assertEqual(
            format_stats(det),
            ["FPS: 12.3", "Inference: 15 ms", "Objects: 3 (kept)", "NMS filtered/raw: 2/5"],
        )

    def test_format_stats_sentinels(self) -> None:
        lines = format_stats(Detection.empty())
        self.assertEqual(lines[0], "FPS: -")
        self.assertEqual(lines[1], "Inference: -")
        self.assertEqual(lines[3], "NMS filtered/raw: 0/0")

    def test_styles(self) -> None:
        self.assertEqual(style_for_class(0), ((255, 0, 0), 3))
        self.assertEqual(style_for_class(1), ((255, 0, 255), 2))
        self.assertEqual(style_for_class(7), ((255, 255, 0), 1))

    def test_scale_to_canvas(self) -> None:
        out = scale_detection_to_canvas(_detection(CoordinateSpace.IMAGE), (60, 60), (120, 240))
        self.assertIs(out.space, CoordinateSpace.DISPLAY)
        b = out.bounding_boxes[0]
        self.assertEqual((b.start_x, b.start_y, b.width, b.height), (20.0, 40.0, 40.0, 80.0))
        self.assertEqual((out.area.width, out.area.height), (120.0, 240.0))
        with self.assertRaises(ValueError):
            scale_detection_to_canvas(_detection(), (0, 60), (120, 240))

    def test_draw_returns_annotated_copy(self) -> None:
        img = np.zeros((60, 80, 3), dtype=np.uint8)
        vis = draw_detection(img, _detection())
        self.assertEqual(vis.shape, img.shape)
        self.assertFalse(np.any(img))
        self.assertTrue(np.any(vis))
        # Area outline is red (BGR).
        self.assertEqual(tuple(vis[0, 30]), (0, 0, 255))

    def test_draw_ground_truth_and_stats(self) -> None:
        img = np.zeros((60, 80, 3), dtype=np.uint8)
        gt = [BoundingBox(10.0, 10.0, 20.0, 20.0, confidence=1.0)]
        vis = draw_ground_truth(img, gt)
        self.assertEqual(tuple(vis[10, 20]), (255, 255, 255))
        self.assertTrue(np.any(draw_stats(img, _detection())))

    def test_draw_rejects_bad_image(self) -> None:
        with self.assertRaises(ValueError):
            draw_detection(np.zeros((10, 10), dtype=np.uint8), _detection())


class TestSetupLogging(unittest.TestCase):
    def tearDown(self) -> None:
        for name in ("foofinder_kit", "foofinder_live"):
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                if getattr(handler, "_foofinder", False):
                    logger.removeHandler(handler)
            logger.propagate = True
            logger.setLevel(logging.NOTSET)

    def test_idempotent(self) -> None:
        setup_logging("debug")
        setup_logging(logging.WARNING)
        kit = logging.getLogger("foofinder_kit")
        self.assertEqual(sum(1 for h in kit.handlers if getattr(h, "_foofinder", False)), 1)
        self.assertEqual(kit.level, logging.WARNING)

    def test_unknown_level(self) -> None:
        with self.assertRaises(ValueError):
            setup_logging("chatty")


if __name__ == "__main__":
    unittest.main()
