import unittest

import numpy as np

from fakes import FakeBackend, raw_candidates, selected_rows
from yolo_nms.errors import InferenceError
from yolo_nms.invoke import run_detector, run_suppression
from yolo_nms.types import ModelIO, SuppressionConfig


class TestRunDetector(unittest.IsolatedAsyncioTestCase):
    async def test_feeds_named_input_and_returns_output(self) -> None:
        raw = raw_candidates(anchors=16, classes=3)
        backend = FakeBackend(raw)
        blob = np.zeros((1, 3, 32, 32), dtype=np.float32)

        out = await run_detector(backend, blob)

        self.assertEqual(list(backend.calls[0].keys()), ["images"])
        self.assertEqual(backend.calls[0]["images"].shape, (1, 3, 32, 32))
        np.testing.assert_array_equal(out, raw)

    async def test_custom_input_name(self) -> None:
        backend = FakeBackend(raw_candidates())
        await run_detector(backend, np.zeros((1, 3, 8, 8), dtype=np.float32), ModelIO(detector_input="input"))
        self.assertIn("input", backend.calls[0])

    async def test_backend_failure_is_inference_error(self) -> None:
        cause = RuntimeError("session exploded")
        backend = FakeBackend(error=cause)
        with self.assertRaises(InferenceError) as ctx:
            await run_detector(backend, np.zeros((1, 3, 8, 8), dtype=np.float32))
        self.assertIs(ctx.exception.__cause__, cause)
        self.assertEqual(len(backend.calls), 1)

    async def test_wrong_rank_is_inference_error(self) -> None:
        backend = FakeBackend(np.zeros((8, 6), dtype=np.float32))
        with self.assertRaises(InferenceError):
            await run_detector(backend, np.zeros((1, 3, 8, 8), dtype=np.float32))

    async def test_integer_output_is_inference_error(self) -> None:
        backend = FakeBackend(np.zeros((1, 8, 6), dtype=np.int64))
        with self.assertRaises(InferenceError):
            await run_detector(backend, np.zeros((1, 3, 8, 8), dtype=np.float32))


class TestRunSuppression(unittest.IsolatedAsyncioTestCase):
    async def test_packs_config_tensor(self) -> None:
        backend = FakeBackend(selected_rows([[10, 10, 4, 4, 0.9, 0.1]]))
        raw = raw_candidates()

        out = await run_suppression(backend, raw, SuppressionConfig(100, 0.45, 0.25))

        feeds = backend.calls[0]
        self.assertEqual(set(feeds), {"detection", "config"})
        np.testing.assert_array_equal(feeds["detection"], raw)
        self.assertEqual(feeds["config"].dtype, np.float32)
        self.assertEqual(feeds["config"].shape, (3,))
        np.testing.assert_allclose(feeds["config"], [100.0, 0.45, 0.25], rtol=1e-6)
        self.assertEqual(out.shape, (1, 1, 6))

    async def test_empty_selection_is_allowed(self) -> None:
        out = await run_suppression(FakeBackend(selected_rows([])), raw_candidates(), SuppressionConfig())
        self.assertEqual(out.shape[1], 0)

    async def test_more_rows_than_top_k_is_inference_error(self) -> None:
        rows = [[i, i, 2, 2, 0.9, 0.1] for i in range(4)]
        with self.assertRaises(InferenceError):
            await run_suppression(FakeBackend(selected_rows(rows)), raw_candidates(), SuppressionConfig(top_k=3))

    async def test_exactly_top_k_rows_pass(self) -> None:
        rows = [[i, i, 2, 2, 0.9, 0.1] for i in range(3)]
        out = await run_suppression(FakeBackend(selected_rows(rows)), raw_candidates(), SuppressionConfig(top_k=3))
        self.assertEqual(out.shape[1], 3)

    async def test_rows_without_scores_are_rejected(self) -> None:
        backend = FakeBackend(np.zeros((1, 2, 4), dtype=np.float32))
        with self.assertRaises(InferenceError):
            await run_suppression(backend, raw_candidates(), SuppressionConfig())

    async def test_backend_failure_is_inference_error(self) -> None:
        with self.assertRaises(InferenceError):
            await run_suppression(FakeBackend(error=ValueError("bad")), raw_candidates(), SuppressionConfig())


class TestSuppressionConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        cfg = SuppressionConfig()
        self.assertEqual((cfg.top_k, cfg.iou_threshold, cfg.score_threshold), (100, 0.45, 0.25))

    def test_validation(self) -> None:
        for kwargs in [
            {"top_k": 0},
            {"top_k": -1},
            {"top_k": 2.5},
            {"top_k": True},
            {"iou_threshold": 1.5},
            {"score_threshold": -0.1},
        ]:
            with self.assertRaises(ValueError, msg=str(kwargs)):
                SuppressionConfig(**kwargs)


if __name__ == "__main__":
    unittest.main()
