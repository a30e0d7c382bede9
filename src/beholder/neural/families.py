"""Detector families and a pool of independent detectors."""

import logging
import queue
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any, Callable, Iterator, List, Mapping, Optional, Type

from .craft import CRAFTStrategy
from .db import DBStrategy
from .detector import ExtractionStrategy, ObjectDetector
from .east import EASTStrategy
from .parseq import PARSeqStrategy
from .yolov8 import YOLOv8Strategy

logger = logging.getLogger(__name__)

DETECTOR_FAMILIES: Mapping[str, Type[ExtractionStrategy]] = MappingProxyType({
    EASTStrategy.name: EASTStrategy,
    YOLOv8Strategy.name: YOLOv8Strategy,
    PARSeqStrategy.name: PARSeqStrategy,
    DBStrategy.name: DBStrategy,
    CRAFTStrategy.name: CRAFTStrategy,
})


def create_detector(family: str, **config: Any) -> ObjectDetector:
    """Create an uninitialized detector of the given family.

    Args:
        family: One of :data:`DETECTOR_FAMILIES`
        **config: :class:`~beholder.neural.config.DetectorConfig` fields
            overriding the family defaults

    Raises:
        KeyError: unknown family
    """
    if family not in DETECTOR_FAMILIES:
        available = ", ".join(DETECTOR_FAMILIES)
        raise KeyError(f"Unknown detector family '{family}'. Available: {available}")
    return ObjectDetector(DETECTOR_FAMILIES[family](), **config)


class DetectorPool:
    """A fixed set of independent, initialized detectors.

    Every detector owns its session and buffers; ``acquire()`` hands one out
    exclusively and blocks while all are in use.

    Usage:
        pool = DetectorPool(lambda: create_detector("east", model_path=..., model=...), size=4)
        with pool.acquire() as det:
            det.detect(image)
            results = det.results
    """

    def __init__(self, factory: Callable[[], ObjectDetector], size: int = 2):
        if size < 1:
            raise ValueError(f"pool size must be positive, got {size}")
        self._detectors: List[ObjectDetector] = []
        self._idle: "queue.Queue[ObjectDetector]" = queue.Queue()
        for i in range(size):
            det = factory()
            if not det.init():
                raise RuntimeError(f"failed to initialize pooled detector {i}")
            self._detectors.append(det)
            self._idle.put(det)
        logger.info("detector pool ready with %d detectors", size)

    def __len__(self) -> int:
        return len(self._detectors)

    @contextmanager
    def acquire(self, timeout: Optional[float] = None) -> Iterator[ObjectDetector]:
        """Borrow a detector for the duration of the ``with`` block.

        Raises:
            queue.Empty: no detector became free within ``timeout`` seconds
        """
        det = self._idle.get(timeout=timeout)
        try:
            yield det
        finally:
            self._idle.put(det)

    def close(self) -> None:
        """Release all models."""
        for det in self._detectors:
            det.reset()
