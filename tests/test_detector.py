"""
Tests for the object detector state machine and the detector families.

Model files are placeholders and inference is served by the fake backend
from conftest.py, so no real models are needed.
"""

import math

import numpy as np
import pytest

from beholder.image.raw import array_to_raw
from beholder.neural import (
    DETECTOR_FAMILIES,
    ConfigurationError,
    DetectorConfig,
    DetectorNotReadyError,
    DetectorPool,
    DetectorState,
    ONNXRuntimeError,
    ResizeMode,
    YOLOv8Strategy,
    create_detector,
)
from beholder.neural import detector as detector_module
from beholder.neural.config import PRINTABLE_CHARSET
from beholder.results import Rectangle


def yolo_output(anchors, num_classes=2):
    """Build a (1, 4 + nc, N) tensor from (cx, cy, w, h, scores) tuples."""
    out = np.zeros((1, 4 + num_classes, len(anchors)), dtype=np.float32)
    for i, (cx, cy, w, h, scores) in enumerate(anchors):
        out[0, :4, i] = (cx, cy, w, h)
        out[0, 4:, i] = scores
    return out


ANCHORS = [
    (100, 100, 50, 40, (0.9, 0.1)),
    (102, 101, 50, 40, (0.8, 0.2)),  # overlaps the first
    (400, 300, 20, 20, (0.1, 0.7)),
    (500, 500, 10, 10, (0.2, 0.3)),  # below threshold
]


@pytest.fixture
def yolo(fake_backend, model_dir):
    fake_backend.outputs = [yolo_output(ANCHORS)]
    det = create_detector(
        "yolov8", model_path=str(model_dir), model="model.onnx", classes=("person", "car")
    )
    assert det.init()
    return det


@pytest.fixture
def square_image():
    return np.zeros((640, 640, 3), dtype=np.uint8)


class TestConfig:
    """Tests for detector configuration."""

    def test_family_defaults_merged_under_overrides(self):
        det = create_detector("east", model="east.onnx", size=(640, 320))

        assert det.config.mean == (123.68, 116.78, 103.94)
        assert det.config.size == (640, 320)

    def test_lists_are_normalized(self):
        config = DetectorConfig.from_dict({"model": "m.onnx", "mean": [1, 2, 3], "scale": 0.5})

        assert config.mean == (1, 2, 3)
        assert config.scale == (0.5, 0.5, 0.5)

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError):
            DetectorConfig.from_dict({"model": "m.onnx", "colour": "red"})

    @pytest.mark.parametrize("field, value", [
        ("model", ""),
        ("mean", (1.0, 2.0)),
        ("scale", (1.0, 0.0, 1.0)),
        ("size", (0, 640)),
        ("confidence_threshold", 1.5),
        ("nms_threshold", -0.1),
        ("resize_mode", "stretch"),
    ])
    def test_validate_rejects(self, field, value):
        config = DetectorConfig(**{"model": "m.onnx", field: value})

        with pytest.raises(ConfigurationError):
            config.validate()

    def test_validate_accepts_defaults(self):
        DetectorConfig(model="m.onnx").validate()

    def test_unknown_override(self):
        """Test that unknown detector options are configuration errors."""
        with pytest.raises(ConfigurationError):
            create_detector("east", model="east.onnx", colour="red")
        with pytest.raises(ConfigurationError):
            DetectorConfig(model="m.onnx").updated(colour="red")

    def test_override_of_full_config(self):
        config = DetectorConfig(model="m.onnx", size=(320, 320))

        det = detector_module.ObjectDetector(YOLOv8Strategy(), config, nms_threshold=0.6)

        assert det.config.nms_threshold == 0.6
        assert det.config.size == (320, 320)

    def test_single_class_name(self):
        """Test that a bare class name is one class, not its letters."""
        config = DetectorConfig.from_dict({"model": "m.onnx", "classes": "person"})

        assert config.classes == ("person",)

    def test_config_is_frozen_after_init(self, yolo):
        with pytest.raises(RuntimeError):
            yolo.config = DetectorConfig(model="other.onnx")


class TestStateMachine:
    """Tests for init/detect/reset transitions."""

    def test_init_success(self, yolo, fake_backend, model_dir):
        assert yolo.state is DetectorState.READY
        assert fake_backend.sessions[-1].model_path == model_dir / "model.onnx"

    def test_init_missing_model(self, fake_backend, tmp_path):
        det = create_detector("yolov8", model_path=str(tmp_path), model="missing.onnx")

        assert det.init() is False
        assert det.state is DetectorState.UNINITIALIZED
        assert det.session is None

    def test_init_invalid_config(self, fake_backend, model_dir):
        det = create_detector("yolov8", model_path=str(model_dir), model="model.onnx",
                              confidence_threshold=2.0)

        assert det.init() is False
        assert det.state is DetectorState.UNINITIALIZED

    def test_init_backend_failure(self, monkeypatch, model_dir):
        def broken(*args, **kwargs):
            raise ONNXRuntimeError("bad model")

        monkeypatch.setattr(detector_module, "ONNXInferenceBase", broken)
        det = create_detector("east", model_path=str(model_dir), model="model.onnx")

        assert det.init() is False
        assert det.state is DetectorState.UNINITIALIZED

    def test_detect_before_init(self, square_image):
        det = create_detector("yolov8", model="model.onnx")

        with pytest.raises(DetectorNotReadyError):
            det.detect(square_image)

    def test_detect_none(self, yolo):
        with pytest.raises(TypeError):
            yolo.detect(None)

    def test_empty_image_keeps_results(self, yolo, square_image):
        assert yolo.detect(square_image)
        before = yolo.results

        assert yolo.detect(np.zeros((0, 0, 3), dtype=np.uint8)) is False
        assert yolo.results == before
        assert yolo.state is DetectorState.READY

    def test_reset(self, yolo, square_image):
        yolo.detect(square_image)

        yolo.reset()

        assert yolo.state is DetectorState.UNINITIALIZED
        assert yolo.results == ()
        with pytest.raises(DetectorNotReadyError):
            yolo.detect(square_image)

    def test_clear(self, yolo, square_image):
        yolo.detect(square_image)

        yolo.clear()

        assert yolo.results == ()
        assert len(yolo.buffers) == 0
        assert yolo.state is DetectorState.READY


class TestDetectFailures:
    """Tests that failed detections keep the previous results."""

    def test_malformed_output(self, yolo, fake_backend, square_image):
        assert yolo.detect(square_image)
        before = yolo.results

        fake_backend.outputs = [np.zeros((1, 3, 5), dtype=np.float32)]

        assert yolo.detect(square_image) is False
        assert yolo.results == before
        assert yolo.state is DetectorState.READY

    def test_backend_error(self, yolo, fake_backend, square_image):
        assert yolo.detect(square_image)
        before = yolo.results

        fake_backend.outputs = ONNXRuntimeError("device lost")

        assert yolo.detect(square_image) is False
        assert yolo.results == before

    def test_no_candidates_is_success(self, yolo, fake_backend, square_image):
        """Test that a successful run with nothing found replaces the results."""
        assert yolo.detect(square_image)
        fake_backend.outputs = [yolo_output([(10, 10, 5, 5, (0.1, 0.1))])]

        assert yolo.detect(square_image) is True
        assert yolo.results == ()


class TestYOLOv8:
    """Tests for the YOLOv8 family."""

    def test_decode_and_nms(self, yolo, square_image):
        assert yolo.detect(square_image)

        results = yolo.results
        assert [r.text for r in results] == ["person", "car"]
        assert results[0].box == Rectangle(75, 80, 125, 120)
        assert results[1].box == Rectangle(390, 290, 410, 310)
        assert results[0].confidence == pytest.approx(0.9)
        assert all(r.box_rot_angle == 0 for r in results)

    def test_class_id_without_names(self, fake_backend, model_dir, square_image):
        fake_backend.outputs = [yolo_output(ANCHORS)]
        det = create_detector("yolov8", model_path=str(model_dir), model="model.onnx")
        det.init()

        det.detect(square_image)

        assert [r.text for r in det.results] == ["0", "1"]

    def test_per_class_nms(self, fake_backend, model_dir, square_image):
        anchors = list(ANCHORS)
        anchors[1] = (102, 101, 50, 40, (0.1, 0.8))
        fake_backend.outputs = [yolo_output(anchors)]
        det = create_detector("yolov8", model_path=str(model_dir), model="model.onnx",
                              class_agnostic_nms=False)
        det.init()

        det.detect(square_image)

        assert [r.confidence for r in det.results] == pytest.approx([0.9, 0.8, 0.7])

    def test_letterboxed_image(self, yolo, fake_backend):
        """Test mapping back from a letterboxed blob (hand computed)."""
        # 640x320 image: factor 1, 160 rows of padding on top
        fake_backend.outputs = [yolo_output([(100, 260, 50, 40, (0.9, 0.0))])]

        assert yolo.detect(np.zeros((320, 640, 3), dtype=np.uint8))

        box = yolo.results[0].box
        assert box.coordinates == pytest.approx((75, 80, 125, 120), abs=1)

    def test_repeated_detect_is_identical(self, yolo, fake_backend, square_image):
        """Test that buffers are reused without accumulating."""
        assert yolo.detect(square_image)
        first = yolo.results
        blob = yolo.buffers.blob

        for _ in range(3):
            assert yolo.detect(square_image)
            assert yolo.results == first

        assert yolo.buffers.blob is blob
        assert len(yolo.buffers.t_nms_ids) == 2
        assert len(fake_backend.sessions[-1].blobs) == 4

    def test_input_image_untouched(self, yolo, color_image):
        before = color_image.copy()

        yolo.detect(color_image)

        np.testing.assert_array_equal(color_image, before)

    def test_raw_image_input(self, yolo, square_image):
        assert yolo.detect(array_to_raw(square_image))
        assert len(yolo.results) == 2


class TestEAST:
    """Tests for the EAST family."""

    @pytest.fixture
    def east(self, fake_backend, model_dir):
        det = create_detector("east", model_path=str(model_dir), model="model.onnx", size=(8, 8))
        assert det.init()
        return det

    @staticmethod
    def outputs(angle):
        scores = np.zeros((1, 1, 2, 2), dtype=np.float32)
        geometry = np.zeros((1, 5, 2, 2), dtype=np.float32)
        scores[0, 0, 1, 1] = 0.9
        # distances to top, right, bottom, left and the angle
        geometry[0, :, 1, 1] = (2, 3, 2, 1, angle)
        # geometry first: outputs are told apart by channel count
        return [geometry, scores]

    def test_axis_aligned_box(self, east, fake_backend):
        fake_backend.outputs = self.outputs(0.0)

        assert east.detect(np.zeros((8, 8, 3), dtype=np.uint8))

        (r,) = east.results
        assert r.box.coordinates == pytest.approx((3, 2, 7, 6))
        assert r.box_rot_angle == 0
        assert r.confidence == pytest.approx(0.9)

    def test_rotated_box(self, east, fake_backend):
        fake_backend.outputs = self.outputs(math.pi / 2)

        assert east.detect(np.zeros((8, 8, 3), dtype=np.uint8))

        (r,) = east.results
        assert r.box.coordinates == pytest.approx((2, 1, 6, 5), abs=1e-4)
        assert r.box_rot_angle == pytest.approx(-90)

    def test_scaled_back_to_image(self, east, fake_backend):
        """Test that a 16x16 image maps blob boxes back at factor 2."""
        fake_backend.outputs = self.outputs(0.0)

        assert east.detect(np.zeros((16, 16, 3), dtype=np.uint8))

        assert east.results[0].box.coordinates == pytest.approx((6, 4, 14, 12))

    def test_wrong_outputs(self, east, fake_backend):
        fake_backend.outputs = [np.zeros((1, 1, 2, 2), dtype=np.float32)]

        assert east.detect(np.zeros((8, 8, 3), dtype=np.uint8)) is False


class TestPARSeq:
    """Tests for the PARSeq family."""

    def test_defaults(self):
        config = create_detector("parseq", model="parseq.onnx").config

        assert config.size == (128, 32)
        assert ResizeMode(config.resize_mode) is ResizeMode.RAW
        assert config.n_pos == 26
        assert config.charset == PRINTABLE_CHARSET

    def test_decode_ab(self, fake_backend, model_dir):
        """Test decoding a hand made tensor with a two character charset."""
        logits = np.array([[[0.0, 5.0, 0.0], [0.0, 0.0, 5.0]]], dtype=np.float32)
        fake_backend.outputs = [logits]
        det = create_detector("parseq", model_path=str(model_dir), model="model.onnx",
                              charset="AB", n_pos=2)
        assert det.init()
        image = np.zeros((20, 60, 3), dtype=np.uint8)

        assert det.detect(image)
        first = det.results
        assert det.detect(image)

        p = math.exp(5) / (math.exp(5) + 2)
        (r,) = det.results
        assert det.results == first
        assert r.text == "AB"
        assert r.confidence == pytest.approx(p * p, rel=1e-5)
        assert r.box == Rectangle(0, 0, 60, 20)

    def test_empty_sequence(self, fake_backend, model_dir):
        logits = np.zeros((1, 26, 95), dtype=np.float32)
        logits[0, :, 0] = 1.0
        fake_backend.outputs = [logits]
        det = create_detector("parseq", model_path=str(model_dir), model="model.onnx")
        det.init()

        assert det.detect(np.zeros((32, 128), dtype=np.uint8))
        assert det.results == ()

    def test_shape_mismatch(self, fake_backend, model_dir):
        fake_backend.outputs = [np.zeros((1, 26, 40), dtype=np.float32)]
        det = create_detector("parseq", model_path=str(model_dir), model="model.onnx")
        det.init()

        assert det.detect(np.zeros((32, 128), dtype=np.uint8)) is False


class TestDB:
    """Tests for the DB family."""

    def test_region_to_rotated_box(self, fake_backend, model_dir):
        pred = np.zeros((1, 1, 128, 128), dtype=np.float32)
        pred[0, 0, 50:66, 40:81] = 0.9
        fake_backend.outputs = [pred]
        det = create_detector("db", model_path=str(model_dir), model="model.onnx", size=(128, 128))
        assert det.init()

        assert det.detect(np.zeros((128, 128, 3), dtype=np.uint8))

        (r,) = det.results
        assert r.box.center == pytest.approx((60, 57.5), abs=1.5)
        assert r.box.area > 41 * 16
        assert r.confidence == pytest.approx(0.9, abs=1e-3)


class TestCRAFT:
    """Tests for the CRAFT family."""

    @pytest.fixture
    def craft(self, fake_backend, model_dir):
        det = create_detector("craft", model_path=str(model_dir), model="model.onnx", size=(128, 128))
        assert det.init()
        return det

    @staticmethod
    def score_map(text, link=None):
        """Stack (H, W) text and link maps into a (1, H, W, 2) output."""
        if link is None:
            link = np.zeros_like(text)
        return np.stack([text, link], axis=-1)[np.newaxis].astype(np.float32)

    def test_defaults(self):
        config = create_detector("craft", model="craft.onnx").config

        assert config.mean == pytest.approx((123.675, 116.28, 103.53))
        assert (config.text_threshold, config.link_threshold, config.low_text) == (0.7, 0.4, 0.4)

    def test_word_box(self, craft, fake_backend):
        """Test that a text region maps to a box at twice the map scale."""
        text = np.zeros((64, 64), dtype=np.float32)
        text[20:30, 10:50] = 0.9
        fake_backend.outputs = [self.score_map(text)]

        assert craft.detect(np.zeros((128, 128, 3), dtype=np.uint8))

        (r,) = craft.results
        # dilated region spans columns 7..52 and rows 17..32 of the map
        assert r.box.center == pytest.approx((59, 49), abs=1.5)
        assert r.box.width > r.box.height
        assert r.box.width == pytest.approx(90, abs=3)
        assert r.box_rot_angle % 90 == pytest.approx(0, abs=1e-6)
        assert r.confidence == pytest.approx(0.9)

    def test_linked_characters_form_one_word(self, craft, fake_backend):
        text = np.zeros((64, 64), dtype=np.float32)
        link = np.zeros((64, 64), dtype=np.float32)
        text[20:30, 10:20] = 0.9
        text[20:30, 24:34] = 0.9
        fake_backend.outputs = [self.score_map(text)]
        assert craft.detect(np.zeros((128, 128, 3), dtype=np.uint8))
        assert len(craft.results) == 2

        link[22:28, 18:26] = 0.8
        fake_backend.outputs = [self.score_map(text, link)]
        assert craft.detect(np.zeros((128, 128, 3), dtype=np.uint8))
        assert len(craft.results) == 1

    def test_weak_and_tiny_regions_dropped(self, craft, fake_backend):
        text = np.zeros((64, 64), dtype=np.float32)
        text[5:15, 5:45] = 0.5  # above low_text, below text_threshold
        text[40:42, 40:42] = 0.9  # 4 pixels
        fake_backend.outputs = [self.score_map(text)]

        assert craft.detect(np.zeros((128, 128, 3), dtype=np.uint8))
        assert craft.results == ()

    def test_wrong_output(self, craft, fake_backend):
        fake_backend.outputs = [np.zeros((1, 2, 64, 64), dtype=np.float32)]

        assert craft.detect(np.zeros((128, 128, 3), dtype=np.uint8)) is False


class TestFamilies:
    """Tests for the family table and detector pool."""

    def test_family_names(self):
        assert set(DETECTOR_FAMILIES) == {"east", "yolov8", "parseq", "db", "craft"}

    def test_unknown_family(self):
        with pytest.raises(KeyError):
            create_detector("textsnake")

    def test_pool_hands_out_distinct_detectors(self, fake_backend, model_dir, square_image):
        fake_backend.outputs = [yolo_output(ANCHORS)]
        pool = DetectorPool(
            lambda: create_detector("yolov8", model_path=str(model_dir), model="model.onnx"),
            size=2,
        )

        with pool.acquire() as a, pool.acquire() as b:
            assert a is not b
            assert a.buffers is not b.buffers
            assert a.detect(square_image) and b.detect(square_image)
            assert a.results == b.results

        assert len(pool) == 2
        pool.close()

    def test_pool_init_failure(self, fake_backend, tmp_path):
        with pytest.raises(RuntimeError):
            DetectorPool(lambda: create_detector("yolov8", model_path=str(tmp_path), model="x.onnx"))
