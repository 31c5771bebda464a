import unittest

import numpy as np

from yolo_nms.decode import decode_row
from yolo_nms.letterbox import pad_to_square
from yolo_nms.types import Detection
from yolo_nms.visualize import color_for_label, draw_detections, to_image_boxes


def _wide_frame_detection() -> Detection:
    # 1280x720 frame, object at (800, 100, 200, 200): 640x640 model sees it at
    # (400, 50, 100, 100) and reports the centre box below.
    _, ratio = pad_to_square(np.zeros((720, 1280, 3), dtype=np.uint8))
    return decode_row(np.array([450.0, 100.0, 100.0, 100.0, 0.9, 0.1], dtype=np.float32), ratio)


class TestToImageBoxes(unittest.TestCase):
    def test_wide_frame_maps_back_to_object(self) -> None:
        det = _wide_frame_detection()
        boxes = to_image_boxes([det], (1280, 720), (640, 640))
        np.testing.assert_array_equal(boxes, [[800, 100, 1000, 300]])

    def test_identity_when_long_side_matches_model(self) -> None:
        det = Detection(0, 0.5, (10.0, 20.0, 30.0, 40.0))
        boxes = to_image_boxes([det], (640, 640), (640, 640))
        np.testing.assert_array_equal(boxes, [[10, 20, 40, 60]])

    def test_clipped_to_frame(self) -> None:
        det = Detection(0, 0.5, (-20.0, -20.0, 500.0, 500.0))
        boxes = to_image_boxes([det], (50, 50), (50, 50))
        np.testing.assert_array_equal(boxes, [[0, 0, 49, 49]])

    def test_empty(self) -> None:
        self.assertEqual(to_image_boxes([], (10, 10), (640, 640)).shape, (0, 4))

    def test_non_positive_sizes(self) -> None:
        with self.assertRaises(ValueError):
            to_image_boxes([], (0, 10), (640, 640))
        with self.assertRaises(ValueError):
            to_image_boxes([], (10, 10), (640, 0))


class TestDrawDetections(unittest.TestCase):
    def test_colors_are_deterministic(self) -> None:
        self.assertEqual(color_for_label(3), color_for_label(3))
        self.assertEqual(color_for_label(512), color_for_label(512))
        self.assertNotEqual(color_for_label(0), color_for_label(1))
        self.assertEqual(len(color_for_label(512)), 3)

    def test_box_drawn_where_the_object_is(self) -> None:
        img = np.zeros((720, 1280, 3), dtype=np.uint8)
        out = draw_detections(img, [_wide_frame_detection()], model_size=(640, 640), show_score=False)

        # Left and right edges of the box, halfway down.
        self.assertTrue(out[200, 800].any())
        self.assertTrue(out[200, 1000].any())
        # Nothing where the unscaled box would land.
        self.assertFalse(out[200, 400].any())
        self.assertFalse(out[150:, :700].any())

    def test_draws_on_copy(self) -> None:
        img = np.zeros((100, 120, 3), dtype=np.uint8)
        dets = [Detection(0, 0.9, (10.0, 30.0, 40.0, 20.0))]
        out = draw_detections(img, dets, model_size=(120, 120), class_names={0: "person"})
        self.assertFalse(img.any())
        self.assertTrue(out.any())
        self.assertEqual(out.shape, img.shape)

    def test_rejects_non_bgr(self) -> None:
        with self.assertRaises(ValueError):
            draw_detections(np.zeros((10, 10), dtype=np.uint8), [], model_size=(640, 640))
        with self.assertRaises(TypeError):
            draw_detections(None, [], model_size=(640, 640))


if __name__ == "__main__":
    unittest.main()
