"""YOLOv8 object detector: axis aligned boxes with class labels."""

import math
from types import MappingProxyType
from typing import List

import numpy as np

from ..results import Rectangle, Result
from .buffers import DetectionBuffers
from .config import DetectorConfig
from .detector import ExtractionStrategy
from .postprocess import nms_boxes
from .preprocess import BlobGeometry


class YOLOv8Strategy(ExtractionStrategy):
    name = "yolov8"
    defaults = MappingProxyType({
        "scale": (1.0 / 255.0,) * 3,
    })

    def extract(self, buffers: DetectionBuffers, config: DetectorConfig) -> None:
        if len(buffers.outs) != 1:
            raise ValueError(f"YOLOv8 expects 1 output, got {len(buffers.outs)}")
        out = buffers.outs[0]
        # 4 box coordinates and at least one class
        if out.ndim != 3 or out.shape[0] != 1 or out.shape[1] < 5:
            raise ValueError(f"unexpected YOLOv8 output shape: {out.shape}")

        rows = out[0].T  # [1, 4 + nc, N] -> [N, 4 + nc]
        class_scores = rows[:, 4:]
        class_ids = np.argmax(class_scores, axis=1)
        confidences = class_scores[np.arange(len(rows)), class_ids]

        for i in np.nonzero(confidences >= config.confidence_threshold)[0].tolist():
            cx, cy, w, h = (float(v) for v in rows[i, :4])
            buffers.t_boxes.append(Rectangle.from_xywh(
                math.floor(cx - w / 2), math.floor(cy - h / 2), math.floor(w), math.floor(h)
            ))
            buffers.t_class_ids.append(int(class_ids[i]))
            buffers.t_confidences.append(float(confidences[i]))

    def store(
        self,
        buffers: DetectionBuffers,
        config: DetectorConfig,
        geometry: BlobGeometry,
    ) -> List[Result]:
        class_ids = None if config.class_agnostic_nms else buffers.t_class_ids
        buffers.t_nms_ids.extend(
            nms_boxes(buffers.t_boxes, buffers.t_confidences, config.nms_threshold, class_ids)
        )

        results = []
        for i in buffers.t_nms_ids:
            class_id = buffers.t_class_ids[i]
            text = config.classes[class_id] if class_id < len(config.classes) else str(class_id)
            results.append(Result(
                text=text,
                box=geometry.to_image_rect(buffers.t_boxes[i]),
                confidence=buffers.t_confidences[i],
            ))
        return results
