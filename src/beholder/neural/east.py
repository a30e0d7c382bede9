"""EAST scene text detector: rotated text boxes from a geometry map.

See https://docs.opencv.org/4.x/d4/d43/tutorial_dnn_text_spotting.html
"""

import math
from types import MappingProxyType
from typing import List, Tuple

import numpy as np

from ..results import Rectangle, Result
from .buffers import DetectionBuffers
from .config import DetectorConfig
from .detector import ExtractionStrategy
from .postprocess import nms_rotated
from .preprocess import BlobGeometry


def split_outputs(outs: List[np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
    """Return the ``(scores, geometry)`` maps, identified by channel count."""
    if len(outs) != 2:
        raise ValueError(f"EAST expects 2 outputs, got {len(outs)}")
    by_channels = {out.shape[1]: out for out in outs if out.ndim == 4}
    scores, geometry = by_channels.get(1), by_channels.get(5)
    if scores is None or geometry is None:
        raise ValueError(f"unexpected EAST output shapes: {[o.shape for o in outs]}")
    if scores.shape[0] != 1 or geometry.shape[0] != 1 or scores.shape[2:] != geometry.shape[2:]:
        raise ValueError(f"mismatched EAST outputs: {scores.shape} and {geometry.shape}")
    return scores, geometry


class EASTStrategy(ExtractionStrategy):
    name = "east"
    defaults = MappingProxyType({
        "mean": (123.68, 116.78, 103.94),
        "size": (320, 320),
    })

    def extract(self, buffers: DetectionBuffers, config: DetectorConfig) -> None:
        scores, geometry = split_outputs(buffers.outs)
        scores = scores[0, 0]
        d0, d1, d2, d3, angles = geometry[0]

        ys, xs = np.nonzero(scores >= config.confidence_threshold)
        for y, x in zip(ys.tolist(), xs.tolist()):
            angle = float(angles[y, x])
            cos_a = math.cos(angle)
            sin_a = math.sin(angle)
            h = float(d0[y, x] + d2[y, x])
            w = float(d1[y, x] + d3[y, x])

            # the feature map is 4x smaller than the input
            offset_x = x * 4.0 + cos_a * d1[y, x] + sin_a * d2[y, x]
            offset_y = y * 4.0 - sin_a * d1[y, x] + cos_a * d2[y, x]
            p1 = (offset_x - sin_a * h, offset_y - cos_a * h)
            p3 = (offset_x - cos_a * w, offset_y + sin_a * w)
            cx = 0.5 * (p1[0] + p3[0])
            cy = 0.5 * (p1[1] + p3[1])

            buffers.t_boxes.append(Rectangle.from_center(float(cx), float(cy), w, h))
            buffers.t_angles.append(-angle * 180.0 / math.pi)
            buffers.t_confidences.append(float(scores[y, x]))

    def store(
        self,
        buffers: DetectionBuffers,
        config: DetectorConfig,
        geometry: BlobGeometry,
    ) -> List[Result]:
        buffers.t_nms_ids.extend(
            nms_rotated(buffers.t_boxes, buffers.t_angles, buffers.t_confidences, config.nms_threshold)
        )
        return [
            Result(
                box=geometry.to_image_rect(buffers.t_boxes[i]),
                box_rot_angle=buffers.t_angles[i],
                confidence=buffers.t_confidences[i],
            )
            for i in buffers.t_nms_ids
        ]
