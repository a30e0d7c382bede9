"""
Tests for the pipeline runner and its configuration.
"""

import json

import numpy as np
import pytest

from beholder.image.ops import Crop, DrawBoundingBoxes, Grayscale, Invert, Rescale
from beholder.image.processing_op import ProcessingOp
from beholder.neural import ConfigurationError, create_detector
from beholder.pipeline import Pipeline, PipelineConfig, Stage, load_pipeline_config


class Explode(ProcessingOp):
    def execute(self, image):
        raise RuntimeError("boom")


class NoImage(ProcessingOp):
    def execute(self, image):
        return True, None


class RecordResults(ProcessingOp):
    def __init__(self):
        self.seen = []

    def execute(self, image):
        return True, image

    def execute_with_results(self, image, results):
        self.seen.append(list(results))
        return True, image


@pytest.fixture
def image():
    img = np.zeros((100, 100, 3), dtype=np.uint8)
    img[20:60, 30:70] = 200
    return img


@pytest.fixture
def yolo_output():
    out = np.zeros((1, 6, 1), dtype=np.float32)
    out[0, :, 0] = (50, 40, 40, 20, 0.9, 0.1)
    return out


class TestPipelineRun:
    """Tests for running images through a pipeline."""

    def test_success(self, image):
        pipeline = Pipeline(preprocessing=[Grayscale(), Invert()])

        outcome = pipeline.run(image)

        assert outcome.ok
        assert outcome.failed_stage is None
        assert outcome.image.ndim == 2
        assert outcome.image[0, 0] == 255

    def test_short_circuit_on_failure(self, image):
        """Test that a failing step stops the run with the last good image."""
        pipeline = Pipeline(preprocessing=[Grayscale(), Crop(left=500), Invert()])

        outcome = pipeline.run(image)

        assert not outcome.ok
        assert outcome.failed_stage is Stage.PRE
        assert outcome.failed_index == 1
        assert outcome.failed_name == "Crop"
        np.testing.assert_array_equal(outcome.image, Grayscale()(image)[1])

    def test_raising_op_is_a_failure(self, image):
        outcome = Pipeline(preprocessing=[Invert(), Explode()]).run(image)

        assert not outcome.ok
        assert (outcome.failed_index, outcome.failed_name) == (1, "Explode")
        np.testing.assert_array_equal(outcome.image, 255 - image)

    def test_success_without_image_is_a_failure(self, image):
        outcome = Pipeline(preprocessing=[NoImage()]).run(image)

        assert not outcome.ok
        assert outcome.image is image

    def test_input_is_not_modified(self, image):
        before = image.copy()

        Pipeline(preprocessing=[Invert(), Rescale(scale=2.0)]).run(image)

        np.testing.assert_array_equal(image, before)

    def test_none_image(self):
        with pytest.raises(TypeError):
            Pipeline().run(None)

    def test_empty_pipeline(self, image):
        outcome = Pipeline().run(image)

        assert outcome.ok
        assert outcome.image is image


class TestPipelineWithDetector:
    """Tests for pipelines with a detector stage."""

    def test_post_ops_receive_results(self, fake_backend, model_dir, image, yolo_output):
        fake_backend.outputs = [yolo_output]
        recorder = RecordResults()
        detector = create_detector(
            "yolov8", model_path=str(model_dir), model="model.onnx", size=(100, 100)
        )
        pipeline = Pipeline(detector, postprocessing=[recorder, DrawBoundingBoxes()])
        assert pipeline.init()

        outcome = pipeline.run(image)

        assert outcome.ok
        assert len(outcome.results) == 1
        assert outcome.results[0].box.coordinates == (30, 30, 70, 50)
        assert recorder.seen == [list(outcome.results)]
        assert outcome.image.shape == (100, 100, 3)
        assert not np.array_equal(outcome.image, image)

    def test_detector_failure(self, fake_backend, model_dir, image):
        fake_backend.outputs = [np.zeros((1, 2, 3), dtype=np.float32)]
        detector = create_detector("yolov8", model_path=str(model_dir), model="model.onnx")
        pipeline = Pipeline(detector, preprocessing=[Invert()], postprocessing=[Invert()])
        pipeline.init()

        outcome = pipeline.run(image)

        assert not outcome.ok
        assert outcome.failed_stage is Stage.DETECT
        assert outcome.failed_name == "yolov8"
        np.testing.assert_array_equal(outcome.image, 255 - image)

    def test_init_failure(self, fake_backend, tmp_path):
        detector = create_detector("east", model_path=str(tmp_path), model="missing.onnx")

        assert Pipeline(detector).init() is False

    def test_run_many_continues_after_failure(self, image):
        pipeline = Pipeline(preprocessing=[Crop(left=50)])
        images = [image, np.zeros((10, 10), dtype=np.uint8), image]

        outcomes = list(pipeline.run_many(images))

        assert [o.ok for o in outcomes] == [True, False, True]
        assert outcomes[1].failed_name == "Crop"


class TestPipelineConfig:
    """Tests for declarative pipeline configuration."""

    CONFIG = {
        "detector": {"family": "east", "model_path": "models", "model": "east.onnx"},
        "preprocessing": [{"Grayscale": None}, {"GaussianBlur": {"kernel_width": 5}}],
        "postprocessing": [{"DrawBoundingBoxes": {"thickness": 3}}],
    }

    def test_from_dict(self):
        config = PipelineConfig.from_dict(self.CONFIG)

        assert config.family == "east"
        assert config.detector == {"model_path": "models", "model": "east.onnx"}
        assert "family" in self.CONFIG["detector"]
        assert config.to_dict() == self.CONFIG

    def test_build_pipeline(self):
        pipeline = Pipeline.from_config(PipelineConfig.from_dict(self.CONFIG))

        assert pipeline.detector.strategy.name == "east"
        assert pipeline.detector.config.model == "east.onnx"
        assert [op.name for op in pipeline.preprocessing] == ["Grayscale", "GaussianBlur"]
        assert pipeline.postprocessing[0].thickness == 3

    def test_without_detector(self):
        pipeline = Pipeline.from_config(PipelineConfig.from_dict({"preprocessing": [{"Invert": None}]}))

        assert pipeline.detector is None
        assert pipeline.init()

    def test_load_json(self, tmp_path):
        path = tmp_path / "pipeline.json"
        path.write_text(json.dumps(self.CONFIG), encoding="utf-8")

        config = load_pipeline_config(path)

        assert config.to_dict() == self.CONFIG

    def test_unknown_op(self):
        with pytest.raises(KeyError):
            Pipeline.from_config(PipelineConfig.from_dict({"preprocessing": [{"Sharpen": None}]}))

    def test_unknown_detector_option(self):
        config = PipelineConfig.from_dict({"detector": {"family": "east", "model": "m.onnx", "colour": "red"}})

        with pytest.raises(ConfigurationError):
            Pipeline.from_config(config)
