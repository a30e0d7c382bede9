"""Postprocessing of raw network outputs."""

from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np
import pyclipper
from shapely.geometry import Polygon

from ..results import Rectangle, rotated_iou


def _score_order(scores: Sequence[float]) -> List[int]:
    # sorted() is stable, so equal scores keep their output order
    return sorted(range(len(scores)), key=lambda i: -scores[i])


def nms_boxes(
    boxes: Sequence[Rectangle],
    scores: Sequence[float],
    nms_threshold: float,
    class_ids: Optional[Sequence[int]] = None,
) -> List[int]:
    """Greedy non-maximum suppression of axis aligned boxes.

    Args:
        boxes: Candidate boxes
        scores: Candidate confidences, same length as boxes
        nms_threshold: Boxes overlapping a kept box by more than this IoU are
            dropped
        class_ids: If given, only boxes of the same class suppress each other

    Returns:
        Indices of the kept boxes, highest score first
    """
    keep: List[int] = []
    for i in _score_order(scores):
        suppressed = False
        for k in keep:
            if class_ids is not None and class_ids[i] != class_ids[k]:
                continue
            if boxes[i].iou(boxes[k]) > nms_threshold:
                suppressed = True
                break
        if not suppressed:
            keep.append(i)
    return keep


def nms_rotated(
    boxes: Sequence[Rectangle],
    angles: Sequence[float],
    scores: Sequence[float],
    nms_threshold: float,
) -> List[int]:
    """Greedy non-maximum suppression of rotated boxes.

    Each box is rotated by its angle around its center; overlap is measured
    on the resulting polygons.
    """
    keep: List[int] = []
    for i in _score_order(scores):
        if all(rotated_iou(boxes[i], angles[i], boxes[k], angles[k]) <= nms_threshold for k in keep):
            keep.append(i)
    return keep


class DBPostProcess:
    """Post-processing for DB (Differentiable Binarization) text detection.

    Converts a probability map to rotated boxes.
    """

    def __init__(
        self,
        thresh=0.3,
        box_thresh=0.5,
        max_candidates=50,
        unclip_ratio=2.0,
        use_dilation=False,
    ):
        """Initialize DB post-processor.

        Args:
            thresh: Binarization threshold for probability map
            box_thresh: Minimum confidence score for boxes
            max_candidates: Maximum number of text boxes to detect
            unclip_ratio: Ratio for expanding text regions
            use_dilation: Apply morphological dilation
        """
        self.thresh = thresh
        self.box_thresh = box_thresh
        self.max_candidates = max_candidates
        self.unclip_ratio = unclip_ratio
        self.min_size = 3

        self.dilation_kernel = None if not use_dilation else np.array([[1, 1], [1, 1]], dtype=np.uint8)

    def __call__(self, pred: np.ndarray, dest_width: int, dest_height: int):
        """Convert a probability map to boxes.

        Args:
            pred: Probability map of shape (H, W)
            dest_width: Width of the space boxes are scaled to
            dest_height: Height of the space boxes are scaled to

        Returns:
            List of ``((cx, cy), (w, h), angle)`` rotated rects and their scores
        """
        if pred.ndim != 2:
            raise ValueError(f"Expected 2D probability map, got shape {pred.shape}")

        mask = (pred > self.thresh).astype(np.uint8)
        if self.dilation_kernel is not None:
            mask = cv2.dilate(mask, self.dilation_kernel)
        return self.boxes_from_bitmap(pred, mask, dest_width, dest_height)

    def boxes_from_bitmap(self, pred, bitmap, dest_width, dest_height):
        """Extract rotated boxes from binary bitmap."""
        height, width = bitmap.shape
        sx = dest_width / float(width)
        sy = dest_height / float(height)

        contours, _ = cv2.findContours(bitmap * 255, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)

        rects = []
        scores = []
        for contour in contours[:self.max_candidates]:
            rect = cv2.minAreaRect(contour)
            if min(rect[1]) < self.min_size:
                continue

            points = cv2.boxPoints(rect)
            score = self.box_score_fast(pred, points)
            if score < self.box_thresh:
                continue

            expanded = self.unclip(points, self.unclip_ratio)
            if len(expanded) != 1:
                continue
            (cx, cy), (w, h), angle = cv2.minAreaRect(expanded[0].astype(np.float32))
            if min(w, h) < self.min_size + 2:
                continue

            rects.append(((cx * sx, cy * sy), (w * sx, h * sy), angle))
            scores.append(float(score))

        return rects, scores

    def unclip(self, box, unclip_ratio):
        """Expand box using Vatti clipping algorithm."""
        poly = Polygon(box)
        distance = poly.area * unclip_ratio / poly.length
        offset = pyclipper.PyclipperOffset()
        offset.AddPath(np.round(box).astype(np.int64).tolist(), pyclipper.JT_ROUND, pyclipper.ET_CLOSEDPOLYGON)
        return [np.array(path) for path in offset.Execute(distance)]

    def box_score_fast(self, bitmap, box):
        """Calculate box confidence score using bbox mean."""
        h, w = bitmap.shape[:2]
        box = box.copy()

        xmin = np.clip(np.floor(box[:, 0].min()).astype("int32"), 0, w - 1)
        xmax = np.clip(np.ceil(box[:, 0].max()).astype("int32"), 0, w - 1)
        ymin = np.clip(np.floor(box[:, 1].min()).astype("int32"), 0, h - 1)
        ymax = np.clip(np.ceil(box[:, 1].max()).astype("int32"), 0, h - 1)

        mask = np.zeros((ymax - ymin + 1, xmax - xmin + 1), dtype=np.uint8)
        box[:, 0] = box[:, 0] - xmin
        box[:, 1] = box[:, 1] - ymin
        cv2.fillPoly(mask, box.reshape(1, -1, 2).astype("int32"), 1)
        return cv2.mean(bitmap[ymin:ymax + 1, xmin:xmax + 1].astype(np.float32), mask)[0]


def decode_sequence(logits: np.ndarray, charset: str) -> Tuple[str, float]:
    """Greedy decoding of per-position character scores.

    Index 0 of every position is the end-of-sequence token, index ``i > 0``
    is ``charset[i - 1]``. The confidence is the product of the softmax
    probabilities of the chosen tokens, including the end token.

    Args:
        logits: Scores of shape (n_pos, len(charset) + 1)
        charset: Characters for indices 1..len(charset)

    Returns:
        Tuple of (text, confidence)
    """
    text = []
    confidence = 1.0
    for row in logits.astype(np.float64):
        best = int(np.argmax(row))
        # exp(max) / sum(exp), shifted for stability
        confidence *= 1.0 / float(np.sum(np.exp(row - row[best])))
        if best == 0:
            break
        text.append(charset[best - 1])
    return "".join(text), confidence
