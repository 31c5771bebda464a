import unittest
from unittest import mock

import numpy as np
from fastapi.testclient import TestClient
from starlette.datastructures import UploadFile as StarletteUploadFile

from fakes import encode_png, fake_handles
from Detection_Server.app import create_app
from Detection_Server.config import ServiceConfig


ROWS = [[32.0, 32.0, 16.0, 8.0, 0.3, 0.7]]
CONFIG = ServiceConfig(input_shape=(1, 3, 64, 64))


def _png(height: int = 48, width: int = 64) -> bytes:
    return encode_png(np.zeros((height, width, 3), dtype=np.uint8))


def _failing_loader():
    raise FileNotFoundError("Models/model3.onnx")


class TestReadyApp(unittest.TestCase):
    def setUp(self) -> None:
        self.handles = fake_handles(ROWS)
        self.client = TestClient(create_app(CONFIG, loader=lambda: self.handles))
        self.client.__enter__()

    def tearDown(self) -> None:
        self.client.__exit__(None, None, None)

    def test_root(self) -> None:
        res = self.client.get("/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.text, "Success connected")

    def test_health(self) -> None:
        res = self.client.get("/health")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["status"], "ready")
        self.assertEqual(res.json()["models"], "ready")

    def test_upload_image(self) -> None:
        res = self.client.post("/upload-image", files={"image": ("frame.png", _png(), "image/png")})
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(list(body.keys()), ["detections"])
        self.assertEqual(len(body["detections"]), 1)
        det = body["detections"][0]
        self.assertEqual(det["label"], 1)
        self.assertAlmostEqual(det["probability"], 0.7, places=5)
        self.assertEqual(len(det["bounding"]), 4)
        # 64x48 image: x ratio 1, y ratio 64/48.
        self.assertAlmostEqual(det["bounding"][0], 24.0, places=3)
        self.assertAlmostEqual(det["bounding"][1], 28.0 * 64.0 / 48.0, places=3)

    def test_query_overrides_reach_suppressor(self) -> None:
        res = self.client.post(
            "/upload-image?topk=7&iou_threshold=0.6&score_threshold=0.3",
            files={"image": ("frame.png", _png(), "image/png")},
        )
        self.assertEqual(res.status_code, 200)
        np.testing.assert_allclose(self.handles.suppressor.calls[-1]["config"], [7.0, 0.6, 0.3], rtol=1e-6)

    def test_undecodable_upload(self) -> None:
        res = self.client.post("/upload-image", files={"image": ("frame.png", b"not an image", "image/png")})
        self.assertEqual(res.status_code, 400)
        self.assertIn("error", res.json())

    def test_missing_image_field(self) -> None:
        res = self.client.post("/upload-image", files={"file": ("frame.png", _png(), "image/png")})
        self.assertEqual(res.status_code, 422)

    def test_invalid_topk(self) -> None:
        res = self.client.post("/upload-image?topk=0", files={"image": ("frame.png", _png(), "image/png")})
        self.assertEqual(res.status_code, 422)

    def test_inference_failure(self) -> None:
        self.handles.detector.error = RuntimeError("CUDA out of memory")
        res = self.client.post("/upload-image", files={"image": ("frame.png", _png(), "image/png")})
        self.assertEqual(res.status_code, 500)
        self.assertIn("inference failed", res.json()["error"])


class TestUploadLimit(unittest.TestCase):
    def test_too_large(self) -> None:
        config = ServiceConfig(input_shape=(1, 3, 64, 64), max_upload_mb=1)
        with TestClient(create_app(config, loader=fake_handles)) as client:
            payload = b"\0" * (1024 * 1024 + 1)
            res = client.post("/upload-image", files={"image": ("big.png", payload, "image/png")})
        self.assertEqual(res.status_code, 413)

    def test_at_limit_is_read_and_decoded(self) -> None:
        config = ServiceConfig(input_shape=(1, 3, 64, 64), max_upload_mb=1)
        with TestClient(create_app(config, loader=fake_handles)) as client:
            payload = b"\0" * (1024 * 1024)
            res = client.post("/upload-image", files={"image": ("big.png", payload, "image/png")})
        # Within the limit, so it reaches the decoder and fails there.
        self.assertEqual(res.status_code, 400)

    def test_upload_read_is_bounded(self) -> None:
        sizes = []
        original_read = StarletteUploadFile.read

        async def recording_read(self, size: int = -1) -> bytes:
            sizes.append(size)
            return await original_read(self, size)

        config = ServiceConfig(input_shape=(1, 3, 64, 64), max_upload_mb=1)
        with mock.patch.object(StarletteUploadFile, "read", recording_read):
            with TestClient(create_app(config, loader=fake_handles)) as client:
                payload = b"\0" * (3 * 1024 * 1024)
                res = client.post("/upload-image", files={"image": ("big.png", payload, "image/png")})
        self.assertEqual(res.status_code, 413)
        self.assertIn(1024 * 1024 + 1, sizes)
        self.assertNotIn(-1, sizes)


class TestNotReadyApp(unittest.TestCase):
    def test_health_and_upload_report_not_ready(self) -> None:
        with TestClient(create_app(CONFIG, loader=_failing_loader)) as client:
            self.assertEqual(client.get("/").status_code, 200)

            health = client.get("/health")
            self.assertEqual(health.status_code, 503)
            self.assertEqual(health.json()["models"], "failed")
            self.assertIn("FileNotFoundError", health.json()["error"])

            res = client.post("/upload-image", files={"image": ("frame.png", _png(), "image/png")})
            self.assertEqual(res.status_code, 503)
            self.assertIn("error", res.json())


if __name__ == "__main__":
    unittest.main()
