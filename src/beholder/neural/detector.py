"""
Object detector: runs one image through a network and a family specific
extraction strategy.

A detector is created with a strategy and configuration, loaded with
:meth:`ObjectDetector.init` and then used for any number of
:meth:`ObjectDetector.detect` calls::

    det = ObjectDetector(YOLOv8Strategy(), model_path="models", model="yolov8n.onnx")
    if det.init() and det.detect(image):
        for r in det.results:
            print(r.text, r.confidence)
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Tuple, Union

import numpy as np

from ..image.processing_op import is_empty
from ..image.raw import RawImage, raw_to_array
from ..models import resolve_model
from ..results import Result
from .buffers import DetectionBuffers
from .config import ConfigurationError, DetectorConfig
from .onnx_base import ONNXInferenceBase
from .preprocess import BlobGeometry, blob_operators, make_blob

logger = logging.getLogger(__name__)


class DetectorState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DETECTING = "detecting"


class DetectorNotReadyError(RuntimeError):
    """Raised when a detector is used before a successful ``init()``."""


class ExtractionStrategy(ABC):
    """Family specific interpretation of network outputs.

    ``extract`` turns ``buffers.outs`` into candidates (in blob coordinates)
    and ``store`` filters them into final results in image coordinates.
    """

    name: str = ""
    defaults: Mapping[str, Any] = MappingProxyType({})

    @abstractmethod
    def extract(self, buffers: DetectionBuffers, config: DetectorConfig) -> None:
        """Fill the candidate buffers from the forward results."""

    @abstractmethod
    def store(
        self,
        buffers: DetectionBuffers,
        config: DetectorConfig,
        geometry: BlobGeometry,
    ) -> List[Result]:
        """Build the final results from the candidates."""

    def __repr__(self):
        return f"{type(self).__name__}()"


class ObjectDetector:
    """Detector state machine around an ONNX Runtime session.

    ``UNINITIALIZED -> READY`` on a successful ``init()``, ``READY ->
    DETECTING -> READY`` for every ``detect()``, back to ``UNINITIALIZED`` on
    ``reset()``. A detector is not thread safe; use one per thread or a
    :class:`~beholder.neural.families.DetectorPool`.
    """

    def __init__(
        self,
        strategy: ExtractionStrategy,
        config: Optional[DetectorConfig] = None,
        **overrides: Any,
    ):
        """
        Args:
            strategy: Family specific extraction strategy
            config: Full configuration; strategy defaults are used if None
            **overrides: Configuration fields replacing the above

        Raises:
            ConfigurationError: unknown configuration field
        """
        self.strategy = strategy
        if config is None:
            config = DetectorConfig.from_dict({**strategy.defaults, **overrides})
        elif overrides:
            config = config.updated(**overrides)
        self._config = config

        self._state = DetectorState.UNINITIALIZED
        self.session: Optional[ONNXInferenceBase] = None
        self.buffers = DetectionBuffers()
        self._preprocess_ops: List = []
        self._results: List[Result] = []

    @property
    def config(self) -> DetectorConfig:
        return self._config

    @config.setter
    def config(self, config: DetectorConfig) -> None:
        if self._state is not DetectorState.UNINITIALIZED:
            raise RuntimeError("can't change the configuration of an initialized detector")
        self._config = config

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def results(self) -> Tuple[Result, ...]:
        """Results of the last successful ``detect()``."""
        return tuple(self._results)

    def init(self) -> bool:
        """Validate the configuration and load the model.

        Returns:
            True if the detector is ready for use. On failure the reason is
            logged and the detector stays uninitialized.
        """
        self.reset()
        cfg = self._config
        try:
            cfg.validate()
            model_file = resolve_model(cfg.model_path, cfg.model)
            self.session = ONNXInferenceBase(
                model_file,
                use_gpu=cfg.use_gpu,
                use_tensorrt=cfg.use_tensorrt,
                num_threads=cfg.num_threads,
            )
            self._preprocess_ops = blob_operators(cfg)
        except ConfigurationError as e:
            logger.error("invalid %s configuration: %s", self.strategy.name, e)
            self.reset()
            return False
        except (FileNotFoundError, FileExistsError) as e:
            logger.error("%s", e)
            self.reset()
            return False
        except Exception:
            logger.exception("failed to load %s model %s", self.strategy.name, cfg.model)
            self.reset()
            return False

        self._state = DetectorState.READY
        logger.info("%s detector ready: %s", self.strategy.name, cfg.model)
        return True

    def detect(self, image: Union[np.ndarray, RawImage]) -> bool:
        """Run detection on one image.

        Args:
            image: BGR/mono array or raw buffer; it is never modified

        Returns:
            True if detection ran; :attr:`results` then holds the (possibly
            empty) new results. False if it failed, prior results are kept.

        Raises:
            DetectorNotReadyError: ``init()`` has not succeeded
            TypeError: ``image`` is None
        """
        if self._state is not DetectorState.READY:
            raise DetectorNotReadyError(f"detector is {self._state.value}, call init() first")
        if image is None:
            raise TypeError("image must not be None")

        if isinstance(image, RawImage):
            image = raw_to_array(image)
            if image is None:
                return False
        if is_empty(image):
            logger.warning("empty input image")
            return False

        self._state = DetectorState.DETECTING
        try:
            buf = self.buffers
            buf.clear()
            buf.blob, geometry = make_blob(image, self._preprocess_ops, buf.blob)
            buf.outs.extend(self.session.forward(buf.blob))
            self.strategy.extract(buf, self._config)
            results = self.strategy.store(buf, self._config, geometry)
        except Exception:
            logger.exception("%s detection failed", self.strategy.name)
            return False
        finally:
            self._state = DetectorState.READY

        self._results = list(results)
        logger.debug("%s: %d candidates, %d results", self.strategy.name, len(buf), len(results))
        return True

    def clear(self) -> None:
        """Drop buffers and results; the detector state is unchanged."""
        self.buffers.clear()
        self._results.clear()

    def reset(self) -> None:
        """Release the model and return to the uninitialized state."""
        self.session = None
        self._preprocess_ops = []
        self.buffers = DetectionBuffers()
        self._results = []
        self._state = DetectorState.UNINITIALIZED

    def __repr__(self):
        return f"ObjectDetector({self.strategy.name!r}, model={self._config.model!r}, state={self._state.value})"
