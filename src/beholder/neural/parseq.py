"""PARSeq scene text recognizer: one text sequence per image."""

from types import MappingProxyType
from typing import List

from ..results import Rectangle, Result
from .buffers import DetectionBuffers
from .config import DetectorConfig, ResizeMode
from .detector import ExtractionStrategy
from .postprocess import decode_sequence
from .preprocess import BlobGeometry


class PARSeqStrategy(ExtractionStrategy):
    """Greedy decoding of a ``(1, n_pos, len(charset) + 1)`` score tensor.

    The recognized text spans the whole input image, so there is nothing to
    filter in :meth:`store`.
    """
    name = "parseq"
    defaults = MappingProxyType({
        "size": (128, 32),
        "resize_mode": ResizeMode.RAW,
        "mean": (127.5, 127.5, 127.5),
        "scale": (1.0 / 127.5,) * 3,
    })

    def extract(self, buffers: DetectionBuffers, config: DetectorConfig) -> None:
        if len(buffers.outs) != 1:
            raise ValueError(f"PARSeq expects 1 output, got {len(buffers.outs)}")
        out = buffers.outs[0]
        if out.ndim != 3 or out.shape[1] != config.n_pos or out.shape[2] != len(config.charset) + 1:
            raise ValueError(
                f"unexpected PARSeq output shape {out.shape}, expected "
                f"(1, {config.n_pos}, {len(config.charset) + 1})"
            )

        text, confidence = decode_sequence(out[0], config.charset)
        if text:
            buffers.t_texts.append(text)
            buffers.t_confidences.append(confidence)

    def store(
        self,
        buffers: DetectionBuffers,
        config: DetectorConfig,
        geometry: BlobGeometry,
    ) -> List[Result]:
        width, height = geometry.image_size
        return [
            Result(text=text, box=Rectangle(0, 0, width, height), confidence=conf)
            for text, conf in zip(buffers.t_texts, buffers.t_confidences)
        ]
