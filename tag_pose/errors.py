class TagPoseError(Exception):
    """Base class for errors raised by the tag pose demo."""


class UnknownTagFamilyError(TagPoseError, ValueError):
    def __init__(self, name: str):
        super().__init__(f"Unrecognized tag family name: {name!r}")
        self.name = name


class FrameSourceError(TagPoseError, RuntimeError):
    """Raised when a frame source cannot be opened."""


class PoseEstimationError(TagPoseError, RuntimeError):
    """Raised when no pose can be produced for a detection."""


class ConfigError(TagPoseError, ValueError):
    """Raised for malformed configuration files."""
