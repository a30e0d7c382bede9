"""Configuration for object detectors."""

import string
from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Sequence, Tuple, Union

# digits, letters and punctuation; the pretrained PARSeq models use this set
PRINTABLE_CHARSET = string.digits + string.ascii_letters + string.punctuation


class ConfigurationError(ValueError):
    """Raised when a detector configuration can't be used."""


class ResizeMode(str, Enum):
    """How an image is fitted to the network input size."""
    RAW = "raw"  # stretch, aspect ratio is not kept
    CROP = "crop"  # scale to cover, then center crop
    LETTERBOX = "letterbox"  # scale to fit, then pad


@dataclass(frozen=True)
class DetectorConfig:
    """Configuration shared by all detector families.

    Family specific fields are ignored by families which don't use them.
    """
    model_path: str = ""  # directory holding the model
    model: str = ""  # model file name, e.g. "east.onnx"

    # blob parameters
    size: Tuple[int, int] = (640, 640)  # network input (width, height)
    mean: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    swap_rb: bool = True
    pad_value: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    resize_mode: Union[ResizeMode, str] = ResizeMode.LETTERBOX

    confidence_threshold: float = 0.5
    nms_threshold: float = 0.4

    # yolov8
    classes: Tuple[str, ...] = ()
    class_agnostic_nms: bool = True

    # parseq
    charset: str = PRINTABLE_CHARSET
    n_pos: int = 26  # 25 characters + end of sequence

    # craft
    text_threshold: float = 0.7
    link_threshold: float = 0.4
    low_text: float = 0.4  # lower bound of text scores

    # db
    binary_threshold: float = 0.3
    unclip_ratio: float = 2.0
    max_candidates: int = 50
    use_dilation: bool = False

    # backend
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration
    num_threads: int = -1  # -1 for onnxruntime default

    def __post_init__(self):
        # JSON gives lists and scalars; keep tuples so configs stay hashable
        for name in ("mean", "scale", "pad_value"):
            value = getattr(self, name)
            if isinstance(value, (int, float)):
                object.__setattr__(self, name, (float(value),) * 3)
        if isinstance(self.classes, str):
            object.__setattr__(self, "classes", (self.classes,))
        for name in ("size", "mean", "scale", "pad_value", "classes"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DetectorConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        _check_options(data)
        return cls(**data)

    def updated(self, **changes: Any) -> "DetectorConfig":
        """Return a copy with some fields replaced, rejecting unknown keys."""
        _check_options(changes)
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["resize_mode"] = ResizeMode(self.resize_mode).value
        return data

    def validate(self) -> None:
        """Check the configuration.

        Raises:
            ConfigurationError: on the first invalid field
        """
        if not self.model:
            raise ConfigurationError("model file name is empty")
        _check_len("size", self.size, 2)
        if any(int(s) <= 0 for s in self.size):
            raise ConfigurationError(f"size must be positive, got {self.size}")
        _check_len("mean", self.mean, 3)
        _check_len("scale", self.scale, 3)
        _check_len("pad_value", self.pad_value, 3)
        if any(s == 0 for s in self.scale):
            raise ConfigurationError(f"scale must be non-zero, got {self.scale}")
        for name in ("confidence_threshold", "nms_threshold", "binary_threshold",
                     "text_threshold", "link_threshold", "low_text"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be in [0, 1], got {value}")
        try:
            ResizeMode(self.resize_mode)
        except ValueError:
            raise ConfigurationError(f"unknown resize mode: {self.resize_mode!r}") from None
        if self.n_pos < 1:
            raise ConfigurationError(f"n_pos must be positive, got {self.n_pos}")
        if not self.charset:
            raise ConfigurationError("charset is empty")
        if self.unclip_ratio <= 0 or self.max_candidates < 1:
            raise ConfigurationError("unclip_ratio and max_candidates must be positive")


def _check_len(name: str, value: Sequence, n: int) -> None:
    if len(value) != n:
        raise ConfigurationError(f"{name} must have {n} elements, got {len(value)}")


def _check_options(data: Mapping[str, Any]) -> None:
    unknown = set(data) - {f.name for f in fields(DetectorConfig)}
    if unknown:
        raise ConfigurationError(f"Unknown detector options: {', '.join(sorted(unknown))}")
