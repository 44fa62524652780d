from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

import cv2
import numpy as np

from .errors import ConfigError
from .families import DEFAULT_FAMILY, TagFamily, parse_family


@dataclass(frozen=True)
class DetectorConfig:
    """Tunables handed to the tag detector at construction time."""

    family: str = DEFAULT_FAMILY.value
    threads: int = 1
    decimate: float = 1.0
    blur: float = 0.0
    refine_edges: bool = True
    debug: bool = False
    decode_sharpening: float = 0.25

    @property
    def tag_family(self) -> TagFamily:
        return parse_family(self.family)

    def with_overrides(self, **kwargs: Any) -> "DetectorConfig":
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


@dataclass(frozen=True)
class CameraIntrinsics:
    fx: float = 1952.992318829338
    fy: float = 1951.357135681735
    cx: float = 539.6076735381756
    cy: float = 276.4885069533516
    tag_size: float = 0.135  # metres, black border edge

    @property
    def camera_params(self) -> tuple[float, float, float, float]:
        return (self.fx, self.fy, self.cx, self.cy)

    def camera_matrix(self) -> np.ndarray:
        return np.array(
            [[self.fx, 0.0, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )

    def with_overrides(self, **kwargs: Any) -> "CameraIntrinsics":
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


@dataclass
class SourceConfig:
    """Configuration for the frame source."""

    type: str = "device"  # "device", "video", "synthetic"
    device: int | str = 0
    path: Optional[str] = None  # For "video": file to replay
    fps: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class DemoConfig:
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    intrinsics: CameraIntrinsics = field(default_factory=CameraIntrinsics)
    source: SourceConfig = field(default_factory=SourceConfig)
    pose_method: str = "apriltag"  # "apriltag" or "pnp"
    window_name: str = "Tag Detections"
    display: bool = True
    quit_key: str = "q"
    wait_ms: int = 30
    quiet: bool = False
    max_frames: Optional[int] = None
    max_read_failures: int = 30
    csv_path: Optional[str] = None
    log_file: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "DemoConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self


_POSE_METHODS = {"apriltag", "pnp"}
_SOURCE_TYPES = {"device", "video", "synthetic"}


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "YAML config requested but PyYAML is not installed. "
            "Install with: pip install pyyaml"
        ) from exc
    with path.open("r", encoding="utf-8") as fp:
        try:
            data = yaml.safe_load(fp) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("YAML config root must be a mapping")
    return data


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _coerce(cast, value: Any, name: str) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{name}' has invalid value {value!r}") from exc


def _pick(section: dict[str, Any], cls) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    unknown = set(section) - names
    if unknown:
        raise ConfigError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")
    return dict(section)


def load_config(path: str | Path) -> DemoConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            try:
                raw = json.load(fp)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"Invalid JSON in {p}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a JSON/YAML object")

    cfg = DemoConfig()

    det_raw = _pick(_section(raw, "detector"), DetectorConfig)
    base = cfg.detector
    cfg.detector = DetectorConfig(
        family=str(det_raw.get("family", base.family)),
        threads=_coerce(int, det_raw.get("threads", base.threads), "detector.threads"),
        decimate=_coerce(float, det_raw.get("decimate", base.decimate), "detector.decimate"),
        blur=_coerce(float, det_raw.get("blur", base.blur), "detector.blur"),
        refine_edges=bool(det_raw.get("refine_edges", base.refine_edges)),
        debug=bool(det_raw.get("debug", base.debug)),
        decode_sharpening=_coerce(
            float,
            det_raw.get("decode_sharpening", base.decode_sharpening),
            "detector.decode_sharpening",
        ),
    )

    intr_raw = _pick(_section(raw, "intrinsics"), CameraIntrinsics)
    cfg.intrinsics = CameraIntrinsics(
        **{k: _coerce(float, v, f"intrinsics.{k}") for k, v in intr_raw.items()}
    )

    src_raw = _pick(_section(raw, "source"), SourceConfig)
    src = SourceConfig()
    src.type = str(src_raw.get("type", src.type))
    if src.type not in _SOURCE_TYPES:
        raise ConfigError(f"source.type must be one of {sorted(_SOURCE_TYPES)}")
    src.device = src_raw.get("device", src.device)
    src.path = src_raw.get("path", src.path)
    for key in ("fps", "width", "height"):
        value = src_raw.get(key)
        if value is not None:
            setattr(src, key, _coerce(int, value, f"source.{key}"))
    cfg.source = src

    cfg.pose_method = str(raw.get("pose_method", cfg.pose_method))
    if cfg.pose_method not in _POSE_METHODS:
        raise ConfigError(f"pose_method must be one of {sorted(_POSE_METHODS)}")
    cfg.window_name = str(raw.get("window_name", cfg.window_name))
    cfg.display = bool(raw.get("display", cfg.display))
    cfg.quit_key = str(raw.get("quit_key", cfg.quit_key))
    if len(cfg.quit_key) != 1:
        raise ConfigError(f"quit_key must be a single character, got {cfg.quit_key!r}")
    cfg.wait_ms = _coerce(int, raw.get("wait_ms", cfg.wait_ms), "wait_ms")
    cfg.quiet = bool(raw.get("quiet", cfg.quiet))
    if raw.get("max_frames") is not None:
        cfg.max_frames = _coerce(int, raw["max_frames"], "max_frames")
    cfg.max_read_failures = _coerce(
        int, raw.get("max_read_failures", cfg.max_read_failures), "max_read_failures"
    )
    cfg.csv_path = raw.get("csv_path", cfg.csv_path)
    cfg.log_file = raw.get("log_file", cfg.log_file)
    return cfg


def load_intrinsics(path: str | Path, tag_size: float) -> CameraIntrinsics:
    """Read fx/fy/cx/cy from an OpenCV calibration file (``camera_matrix`` node)."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Calibration not found: {p}")
    try:
        fs = cv2.FileStorage(str(p), cv2.FILE_STORAGE_READ)
        try:
            K = fs.getNode("camera_matrix").mat()
        finally:
            fs.release()
    except cv2.error as exc:
        raise ConfigError(f"Unreadable calibration file {p}: {exc}") from exc
    if K is None or K.shape != (3, 3):
        raise ConfigError(f"{p} has no 3x3 camera_matrix")
    return CameraIntrinsics(
        fx=float(K[0, 0]),
        fy=float(K[1, 1]),
        cx=float(K[0, 2]),
        cy=float(K[1, 2]),
        tag_size=float(tag_size),
    )
