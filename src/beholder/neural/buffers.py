"""Scratch storage used while a detector processes one image."""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from ..results import Rectangle


@dataclass
class DetectionBuffers:
    """Temporaries filled by preprocessing, the forward pass and extraction.

    Contents are only meaningful between one ``detect()`` and the next.
    Candidate boxes are in blob coordinates.
    """
    blob: Optional[np.ndarray] = None  # network input, reused across frames
    outs: List[np.ndarray] = field(default_factory=list)  # forward results
    t_boxes: List[Rectangle] = field(default_factory=list)  # unfiltered boxes
    t_angles: List[float] = field(default_factory=list)  # box rotation angles
    t_class_ids: List[int] = field(default_factory=list)
    t_confidences: List[float] = field(default_factory=list)
    t_texts: List[str] = field(default_factory=list)  # decoded sequences
    t_nms_ids: List[int] = field(default_factory=list)  # candidates kept by NMS

    def clear(self) -> None:
        """Empty all containers in place. The blob is kept for reuse."""
        self.outs.clear()
        self.t_boxes.clear()
        self.t_angles.clear()
        self.t_class_ids.clear()
        self.t_confidences.clear()
        self.t_texts.clear()
        self.t_nms_ids.clear()

    def __len__(self) -> int:
        return len(self.t_confidences)
