"""DB (Differentiable Binarization) text detector: rotated text boxes."""

from types import MappingProxyType
from typing import List

from ..results import Rectangle, Result
from .buffers import DetectionBuffers
from .config import DetectorConfig
from .detector import ExtractionStrategy
from .postprocess import DBPostProcess
from .preprocess import BlobGeometry


class DBStrategy(ExtractionStrategy):
    name = "db"
    defaults = MappingProxyType({
        "mean": (122.67891434, 116.66876762, 104.00698793),
        "scale": (1.0 / 255.0,) * 3,
        "size": (736, 736),
    })

    def extract(self, buffers: DetectionBuffers, config: DetectorConfig) -> None:
        if len(buffers.outs) != 1:
            raise ValueError(f"DB expects 1 output, got {len(buffers.outs)}")
        pred = buffers.outs[0]
        if pred.ndim != 4 or pred.shape[:2] != (1, 1):
            raise ValueError(f"unexpected DB output shape: {pred.shape}")

        postprocess = DBPostProcess(
            thresh=config.binary_threshold,
            box_thresh=config.confidence_threshold,
            max_candidates=config.max_candidates,
            unclip_ratio=config.unclip_ratio,
            use_dilation=config.use_dilation,
        )
        blob_w, blob_h = config.size
        rects, scores = postprocess(pred[0, 0], blob_w, blob_h)
        for ((cx, cy), (w, h), angle), score in zip(rects, scores):
            buffers.t_boxes.append(Rectangle.from_center(cx, cy, w, h))
            buffers.t_angles.append(float(angle))
            buffers.t_confidences.append(score)

    def store(
        self,
        buffers: DetectionBuffers,
        config: DetectorConfig,
        geometry: BlobGeometry,
    ) -> List[Result]:
        # candidates come from disjoint contours, no NMS needed
        return [
            Result(
                box=geometry.to_image_rect(box),
                box_rot_angle=angle,
                confidence=conf,
            )
            for box, angle, conf in zip(buffers.t_boxes, buffers.t_angles, buffers.t_confidences)
        ]
