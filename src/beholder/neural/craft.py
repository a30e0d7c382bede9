"""CRAFT character-region text detector: rotated word boxes from region and
affinity score maps.

See https://github.com/clovaai/CRAFT-pytorch
"""

import math
from types import MappingProxyType
from typing import List

import cv2
import numpy as np

from ..results import Rectangle, Result
from .buffers import DetectionBuffers
from .config import DetectorConfig
from .detector import ExtractionStrategy
from .preprocess import BlobGeometry

# components smaller than this many map pixels are noise
MIN_COMPONENT_AREA = 10


class CRAFTStrategy(ExtractionStrategy):
    """Word boxes from connected components of the text and link maps.

    The first output is a ``(1, H, W, 2)`` map at half the input resolution
    holding the region (text) and affinity (link) scores.
    """
    name = "craft"
    # ImageNet statistics on the 0..255 range
    defaults = MappingProxyType({
        "mean": (0.485 * 255.0, 0.456 * 255.0, 0.406 * 255.0),
        "scale": (1.0 / (0.229 * 255.0), 1.0 / (0.224 * 255.0), 1.0 / (0.225 * 255.0)),
    })

    def extract(self, buffers: DetectionBuffers, config: DetectorConfig) -> None:
        if not buffers.outs:
            raise ValueError("CRAFT expects at least 1 output, got 0")
        out = buffers.outs[0]
        if out.ndim != 4 or out.shape[0] != 1 or out.shape[3] != 2:
            raise ValueError(f"unexpected CRAFT output shape: {out.shape}")

        text_map = np.ascontiguousarray(out[0, :, :, 0], dtype=np.float32)
        link_map = np.ascontiguousarray(out[0, :, :, 1], dtype=np.float32)
        rows, cols = text_map.shape

        _, text_score = cv2.threshold(text_map, config.low_text, 1.0, cv2.THRESH_BINARY)
        _, link_score = cv2.threshold(link_map, config.link_threshold, 1.0, cv2.THRESH_BINARY)
        link_area = (link_score == 1) & (text_score == 0)
        combined = np.clip(text_score + link_score, 0, 1).astype(np.uint8)

        n_labels, labels, stats, _ = cv2.connectedComponentsWithStats(combined, connectivity=4)
        # label 0 is the background
        for label in range(1, n_labels):
            area = int(stats[label, cv2.CC_STAT_AREA])
            if area < MIN_COMPONENT_AREA:
                continue
            mask = labels == label
            score = float(text_map[mask].max())
            if score < config.text_threshold:
                continue

            segmap = np.zeros((rows, cols), dtype=np.uint8)
            segmap[mask] = 255
            segmap[link_area] = 0

            x = int(stats[label, cv2.CC_STAT_LEFT])
            y = int(stats[label, cv2.CC_STAT_TOP])
            w = int(stats[label, cv2.CC_STAT_WIDTH])
            h = int(stats[label, cv2.CC_STAT_HEIGHT])
            n_iter = int(math.floor(2.0 * math.sqrt(area * min(w, h) / (w * h))))
            sx, sy = max(x - n_iter, 0), max(y - n_iter, 0)
            ex, ey = min(x + w + n_iter + 1, cols), min(y + h + n_iter + 1, rows)
            kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (1 + n_iter, 1 + n_iter))
            segmap[sy:ey, sx:ex] = cv2.dilate(segmap[sy:ey, sx:ex], kernel)

            contours, _ = cv2.findContours(segmap, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
            for contour in contours:
                (cx, cy), (bw, bh), angle = cv2.minAreaRect(contour)
                # maps are at half the blob resolution
                cx, cy, bw, bh = 2.0 * cx, 2.0 * cy, 2.0 * bw, 2.0 * bh
                if bw < bh:
                    bw, bh = bh, bw
                    angle -= 90.0
                buffers.t_boxes.append(Rectangle.from_center(cx, cy, bw, bh))
                buffers.t_angles.append(float(angle))
                buffers.t_confidences.append(score)

    def store(
        self,
        buffers: DetectionBuffers,
        config: DetectorConfig,
        geometry: BlobGeometry,
    ) -> List[Result]:
        # one box per component, no NMS
        return [
            Result(
                box=geometry.to_image_rect(box),
                box_rot_angle=angle,
                confidence=conf,
            )
            for box, angle, conf in zip(buffers.t_boxes, buffers.t_angles, buffers.t_confidences)
        ]
