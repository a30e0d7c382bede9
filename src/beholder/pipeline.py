"""
Pipeline runner: pre-processing operations, an optional detector and
post-processing operations, applied to one image at a time.

Configuration example (JSON)::

    {
        "detector": {"family": "east", "model_path": "models", "model": "east.onnx"},
        "preprocessing": [{"Grayscale": null}, {"GaussianBlur": {"kernel_width": 5}}],
        "postprocessing": [{"DrawBoundingBoxes": {"thickness": 3}}]
    }
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .image.ops import create_operators
from .image.processing_op import ProcessingOp
from .neural.detector import ObjectDetector
from .neural.families import create_detector
from .results import Result

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    PRE = "pre"
    DETECT = "detect"
    POST = "post"


@dataclass(frozen=True)
class PipelineOutcome:
    """Result of running one image through a pipeline.

    On failure ``image`` is the output of the last successful step and the
    ``failed_*`` fields name the step which failed.
    """
    ok: bool
    image: Optional[np.ndarray]
    failed_stage: Optional[Stage] = None
    failed_index: Optional[int] = None
    failed_name: Optional[str] = None
    results: Tuple[Result, ...] = ()


class Pipeline:
    """Ordered pre-processing, detection and post-processing.

    Steps run in order and the run stops at the first failure; there is no
    rollback.
    """

    def __init__(
        self,
        detector: Optional[ObjectDetector] = None,
        preprocessing: Sequence[ProcessingOp] = (),
        postprocessing: Sequence[ProcessingOp] = (),
    ):
        self.detector = detector
        self.preprocessing = list(preprocessing)
        self.postprocessing = list(postprocessing)

    @classmethod
    def from_config(cls, config: "PipelineConfig") -> "Pipeline":
        detector = None
        if config.family is not None:
            detector = create_detector(config.family, **config.detector)
        return cls(
            detector,
            create_operators(config.preprocessing),
            create_operators(config.postprocessing),
        )

    def init(self) -> bool:
        """Initialize the detector, if any."""
        if self.detector is None:
            return True
        return self.detector.init()

    def run(self, image: np.ndarray) -> PipelineOutcome:
        """Run a single image through all steps.

        Raises:
            TypeError: ``image`` is None
        """
        if image is None:
            raise TypeError("image must not be None")

        img = image
        for index, op in enumerate(self.preprocessing):
            ok, out = _apply(op, img)
            if not ok:
                return PipelineOutcome(False, img, Stage.PRE, index, op.name)
            img = out

        results: Tuple[Result, ...] = ()
        if self.detector is not None:
            if not self.detector.detect(img):
                logger.warning("detection failed")
                return PipelineOutcome(False, img, Stage.DETECT, 0, self.detector.strategy.name)
            results = self.detector.results

        for index, op in enumerate(self.postprocessing):
            ok, out = _apply(op, img, results)
            if not ok:
                return PipelineOutcome(False, img, Stage.POST, index, op.name, results)
            img = out

        return PipelineOutcome(True, img, results=results)

    def run_many(self, images: Iterable[np.ndarray]) -> Iterator[PipelineOutcome]:
        """Run images one after another; a failed image doesn't stop the rest."""
        for i, image in enumerate(images):
            outcome = self.run(image)
            if not outcome.ok:
                logger.info(
                    "image %d failed at %s step %d (%s)",
                    i, outcome.failed_stage.value, outcome.failed_index, outcome.failed_name,
                )
            yield outcome


def _apply(
    op: ProcessingOp,
    image: np.ndarray,
    results: Optional[Sequence[Result]] = None,
) -> Tuple[bool, Optional[np.ndarray]]:
    try:
        ok, out = op(image, results)
    except Exception:
        logger.exception("%s raised", op.name)
        return False, None
    if ok and out is None:
        logger.error("%s reported success without an image", op.name)
        return False, None
    if not ok:
        logger.debug("%s could not be applied", op.name)
    return ok, out


@dataclass
class PipelineConfig:
    """Declarative pipeline description.

    ``detector`` holds :class:`~beholder.neural.config.DetectorConfig` fields;
    the operation lists use the ``[{name: params}]`` format of
    :func:`~beholder.image.ops.create_operators`.
    """
    family: Optional[str] = None
    detector: Dict[str, Any] = field(default_factory=dict)
    preprocessing: List[Dict[str, Any]] = field(default_factory=list)
    postprocessing: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        detector = dict(data.get("detector") or {})
        family = detector.pop("family", None)
        return cls(
            family=family,
            detector=detector,
            preprocessing=list(data.get("preprocessing") or []),
            postprocessing=list(data.get("postprocessing") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        detector = dict(self.detector)
        if self.family is not None:
            detector["family"] = self.family
        return {
            "detector": detector,
            "preprocessing": self.preprocessing,
            "postprocessing": self.postprocessing,
        }


def load_pipeline_config(path: Union[str, Path]) -> PipelineConfig:
    """Read a pipeline configuration from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return PipelineConfig.from_dict(data)
