"""Flat, fixed-layout result records for handing results across a C ABI.

The text buffer of an exported record is owned by the receiver, who must call
:meth:`ExportedResult.release` (or :func:`release_results`) exactly once.
"""

import ctypes
import logging
from typing import Iterable, List

from .results import Rectangle, Result

logger = logging.getLogger(__name__)


class CRectangle(ctypes.Structure):
    _fields_ = [
        ("left", ctypes.c_double),
        ("top", ctypes.c_double),
        ("right", ctypes.c_double),
        ("bottom", ctypes.c_double),
    ]


class CResult(ctypes.Structure):
    _fields_ = [
        ("text", ctypes.c_char_p),
        ("box", CRectangle),
        ("box_rot_angle", ctypes.c_double),
        ("confidence", ctypes.c_double),
    ]


class ExportedResult:
    """Owner of a :class:`CResult` and the text buffer it points to."""

    def __init__(self, result: Result):
        encoded = result.text.encode("utf-8")
        self._buffer = ctypes.create_string_buffer(encoded, len(encoded) + 1)
        box = result.box
        self.record = CResult(
            ctypes.cast(self._buffer, ctypes.c_char_p),
            CRectangle(box.left, box.top, box.right, box.bottom),
            result.box_rot_angle,
            result.confidence,
        )
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def address(self) -> int:
        """Address of the record, for passing to foreign code."""
        if self._released:
            raise RuntimeError("exported result already released")
        return ctypes.addressof(self.record)

    def to_result(self) -> Result:
        """Copy the record back into an owned :class:`Result`."""
        if self._released:
            raise RuntimeError("exported result already released")
        b = self.record.box
        return Result(
            text=(self.record.text or b"").decode("utf-8"),
            box=Rectangle(b.left, b.top, b.right, b.bottom),
            box_rot_angle=self.record.box_rot_angle,
            confidence=self.record.confidence,
        )

    def release(self) -> None:
        """Free the text buffer. Must be called exactly once."""
        if self._released:
            raise RuntimeError("exported result released twice")
        self.record.text = None
        self._buffer = None
        self._released = True


def export_result(result: Result) -> ExportedResult:
    return ExportedResult(result)


def export_results(results: Iterable[Result]) -> List[ExportedResult]:
    exported = [ExportedResult(r) for r in results]
    logger.debug("exported %d results", len(exported))
    return exported


def release_results(exported: Iterable[ExportedResult]) -> None:
    for e in exported:
        e.release()
