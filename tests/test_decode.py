import math
import unittest

import numpy as np

from foofinder_kit.decode import OutputDecoder, OutputLayout, layout_dims
from foofinder_kit.types import BoundingBox, CoordinateSpace, DetectionArea


class TestCornerLayout(unittest.TestCase):
    def setUp(self) -> None:
        self.area = DetectionArea(0.0, 0.0, 640.0, 640.0)
        self.decoder = OutputDecoder(OutputLayout.CORNER)

    def test_single_row_maps_to_area_pixels(self) -> None:
        boxes = self.decoder.decode([0.1, 0.1, 0.5, 0.5, 0.9, 0], (1, 1, 6), self.area)
        self.assertEqual(len(boxes), 1)
        b = boxes[0]
        self.assertAlmostEqual(b.start_x, 64.0, places=3)
        self.assertAlmostEqual(b.start_y, 64.0, places=3)
        self.assertAlmostEqual(b.width, 256.0, places=3)
        self.assertAlmostEqual(b.height, 256.0, places=3)
        self.assertAlmostEqual(b.confidence, 0.9, places=5)
        self.assertEqual(b.class_id, 0)
        self.assertEqual(b.class_name, "foo")
        self.assertIs(b.space, CoordinateSpace.IMAGE)

    def test_area_offset_is_applied(self) -> None:
        area = DetectionArea(10.0, 20.0, 100.0, 100.0)
        boxes = self.decoder.decode([0.5, 0.5, 1.0, 1.0, 0.5, 0], (1, 1, 6), area)
        self.assertEqual(len(boxes), 1)
        self.assertAlmostEqual(boxes[0].start_x, 60.0)
        self.assertAlmostEqual(boxes[0].start_y, 70.0)
        self.assertAlmostEqual(boxes[0].width, 50.0)
        self.assertAlmostEqual(boxes[0].height, 50.0)

    def test_extra_channels_are_ignored(self) -> None:
        raw = np.array([[[0.0, 0.0, 0.5, 0.5, 0.7, 1, 42.0, -3.0]]], dtype=np.float32)
        boxes = self.decoder.decode(raw, raw.shape, self.area)
        self.assertEqual(len(boxes), 1)
        self.assertEqual(boxes[0].class_id, 1)
        self.assertEqual(boxes[0].class_name, "not_foo")

    def test_invalid_confidence_rejected(self) -> None:
        raw = [
            0.1, 0.1, 0.2, 0.2, float("nan"), 0,
            0.1, 0.1, 0.2, 0.2, -0.1, 0,
            0.1, 0.1, 0.2, 0.2, 1.7, 0,
            0.1, 0.1, 0.2, 0.2, 0.0, 0,
        ]
        boxes = self.decoder.decode(raw, (1, 4, 6), self.area)
        # Zero confidence is a valid (if useless) candidate; the filter drops it later.
        self.assertEqual(len(boxes), 1)
        self.assertEqual(boxes[0].confidence, 0.0)

    def test_confidence_range_enforced_on_boxes(self) -> None:
        with self.assertRaises(ValueError):
            BoundingBox(0.0, 0.0, 1.0, 1.0, confidence=1.7)
        with self.assertRaises(ValueError):
            BoundingBox(0.0, 0.0, 1.0, 1.0, confidence=-0.01)
        self.assertEqual(BoundingBox(0.0, 0.0, 1.0, 1.0, confidence=1.0).confidence, 1.0)

    def test_coordinates_clamped_to_area(self) -> None:
        boxes = self.decoder.decode([-0.5, 0.25, 1.5, 2.0, 0.9, 0], (1, 1, 6), self.area)
        self.assertEqual(len(boxes), 1)
        b = boxes[0]
        self.assertEqual(b.start_x, 0.0)
        self.assertEqual(b.end_x, 640.0)
        self.assertAlmostEqual(b.start_y, 160.0)
        self.assertEqual(b.end_y, 640.0)

    def test_degenerate_boxes_rejected(self) -> None:
        raw = [
            0.3, 0.3, 0.3, 0.6, 0.9, 0,  # zero width
            0.6, 0.3, 0.2, 0.6, 0.9, 0,  # inverted x
            1.2, 0.1, 1.5, 0.5, 0.9, 0,  # entirely outside, clamps to zero width
        ]
        self.assertEqual(self.decoder.decode(raw, (1, 3, 6), self.area), [])

    def test_class_id_truncated_toward_zero(self) -> None:
        raw = [
            0.0, 0.0, 0.1, 0.1, 0.9, 1.7,
            0.0, 0.0, 0.1, 0.1, 0.9, 5.2,
            0.0, 0.0, 0.1, 0.1, 0.9, -0.4,
            0.0, 0.0, 0.1, 0.1, 0.9, -2.0,
            0.0, 0.0, 0.1, 0.1, 0.9, float("nan"),
        ]
        boxes = self.decoder.decode(raw, (1, 5, 6), self.area)
        self.assertEqual([b.class_id for b in boxes], [1, 5, 0])
        self.assertEqual([b.class_name for b in boxes], ["not_foo", "unknown", "foo"])

    def test_truncated_buffer_reads_complete_rows_only(self) -> None:
        raw = [0.0, 0.0, 0.5, 0.5, 0.9, 0] + [0.5, 0.5, 1.0, 1.0, 0.8, 1] + [0.1, 0.1]
        boxes = self.decoder.decode(raw, (1, 3, 6), self.area)
        self.assertEqual(len(boxes), 2)
        self.assertEqual([b.class_id for b in boxes], [0, 1])

    def test_empty_output(self) -> None:
        self.assertEqual(self.decoder.decode([], (1, 0, 6), self.area), [])


class TestCenterLayout(unittest.TestCase):
    def setUp(self) -> None:
        self.area = DetectionArea(0.0, 0.0, 100.0, 100.0)
        self.decoder = OutputDecoder("center")

    def test_channel_major_decode(self) -> None:
        # Two candidates, channel-major: [xc..., yc..., w..., h..., conf...]
        raw = np.array(
            [
                [0.5, 0.25],
                [0.5, 0.25],
                [0.2, 0.1],
                [0.4, 0.1],
                [0.9, 0.85],
            ],
            dtype=np.float32,
        )[None, ...]
        boxes = self.decoder.decode(raw, raw.shape, self.area)
        self.assertEqual(len(boxes), 2)
        b0, b1 = boxes
        self.assertAlmostEqual(b0.start_x, 40.0, places=4)
        self.assertAlmostEqual(b0.start_y, 30.0, places=4)
        self.assertAlmostEqual(b0.width, 20.0, places=4)
        self.assertAlmostEqual(b0.height, 40.0, places=4)
        self.assertAlmostEqual(b1.start_x, 20.0, places=4)
        self.assertAlmostEqual(b1.width, 10.0, places=4)
        # Single-class model.
        self.assertEqual({b.class_id for b in boxes}, {0})

    def test_truncated_buffer(self) -> None:
        num = 3
        xc = [0.5, 0.5, 0.5]
        yc = [0.5, 0.5, 0.5]
        w = [0.2, 0.2, 0.2]
        h = [0.2, 0.2, 0.2]
        conf = [0.9, 0.8]  # third confidence missing
        boxes = self.decoder.decode(xc + yc + w + h + conf, (1, 5, num), self.area)
        self.assertEqual([round(b.confidence, 2) for b in boxes], [0.9, 0.8])

    def test_nan_confidence_rejected(self) -> None:
        raw = [0.5, 0.5, 0.5, 0.5, 0.2, 0.2, 0.2, 0.2, float("nan"), 0.7]
        boxes = self.decoder.decode(raw, (1, 5, 2), self.area)
        self.assertEqual(len(boxes), 1)
        self.assertFalse(math.isnan(boxes[0].confidence))


class TestLayoutDims(unittest.TestCase):
    def test_dims(self) -> None:
        self.assertEqual(layout_dims(OutputLayout.CORNER, (1, 300, 6)), (300, 6))
        self.assertEqual(layout_dims(OutputLayout.CENTER, (1, 5, 8400)), (8400, 5))

    def test_bad_shapes(self) -> None:
        with self.assertRaises(ValueError):
            layout_dims(OutputLayout.CORNER, (300, 6))
        with self.assertRaises(ValueError):
            layout_dims(OutputLayout.CORNER, (2, 300, 6))
        with self.assertRaises(ValueError):
            layout_dims(OutputLayout.CORNER, (1, 300, 5))
        with self.assertRaises(ValueError):
            layout_dims(OutputLayout.CENTER, (1, 4, 8400))

    def test_decode_raises_on_bad_shape(self) -> None:
        decoder = OutputDecoder(OutputLayout.CORNER)
        with self.assertRaises(ValueError):
            decoder.decode([0.0] * 6, (1, 6), DetectionArea(0.0, 0.0, 10.0, 10.0))

    def test_parse_layout(self) -> None:
        self.assertIs(OutputLayout.parse(" Center "), OutputLayout.CENTER)
        with self.assertRaises(ValueError):
            OutputLayout.parse("auto")


if __name__ == "__main__":
    unittest.main()
