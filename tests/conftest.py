"""Shared fixtures: sample images and a fake inference backend."""

import numpy as np
import pytest

from beholder.neural import detector as detector_module


class FakeBackend:
    """Stands in for ONNXInferenceBase; returns preset outputs."""

    def __init__(self):
        self.outputs = []
        self.sessions = []

    def session_factory(self, model_path, **kwargs):
        return FakeSession(self, model_path, kwargs)


class FakeSession:
    def __init__(self, backend, model_path, options):
        self.backend = backend
        self.model_path = model_path
        self.options = options
        self.blobs = []
        backend.sessions.append(self)

    def forward(self, blob):
        self.blobs.append(blob.copy())
        outputs = self.backend.outputs
        if isinstance(outputs, Exception):
            raise outputs
        return [np.array(o, dtype=np.float32, copy=True) for o in outputs]


@pytest.fixture
def fake_backend(monkeypatch):
    """Replace the ONNX Runtime session used by detectors."""
    backend = FakeBackend()
    monkeypatch.setattr(detector_module, "ONNXInferenceBase", backend.session_factory)
    monkeypatch.delenv("BEHOLDER_MODEL_REPO", raising=False)
    return backend


@pytest.fixture
def model_dir(tmp_path):
    """Directory with a placeholder model file named model.onnx."""
    (tmp_path / "model.onnx").write_bytes(b"not a real model")
    return tmp_path


@pytest.fixture
def color_image():
    """Deterministic 64x80 BGR test image with some structure."""
    rng = np.random.default_rng(0)
    img = rng.integers(0, 256, size=(64, 80, 3), dtype=np.uint8)
    img[20:40, 10:70] = (255, 255, 255)
    return img


@pytest.fixture
def gray_image(color_image):
    return color_image[:, :, 1].copy()
