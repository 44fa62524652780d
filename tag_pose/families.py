"""Tag family table.

Each member's value is the family name understood by ``pupil_apriltags``, so a
single lookup selects the family both when the detector is created and when it
is torn down.
"""

from __future__ import annotations

from enum import Enum

from .errors import UnknownTagFamilyError


class TagFamily(str, Enum):
    TAG36H11 = "tag36h11"
    TAG25H9 = "tag25h9"
    TAG16H5 = "tag16h5"
    TAG_CIRCLE21H7 = "tagCircle21h7"
    TAG_STANDARD41H12 = "tagStandard41h12"

    @property
    def library_name(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


DEFAULT_FAMILY = TagFamily.TAG36H11


def family_names() -> list[str]:
    return [f.value for f in TagFamily]


def parse_family(name: str | TagFamily) -> TagFamily:
    """Resolve a family name to a :class:`TagFamily`.

    Matching is exact (family names are case sensitive, e.g. ``tagCircle21h7``).

    Raises:
        UnknownTagFamilyError: if ``name`` is not one of :func:`family_names`.
    """
    if isinstance(name, TagFamily):
        return name
    key = (name or "").strip()
    try:
        return TagFamily(key)
    except ValueError:
        raise UnknownTagFamilyError(key) from None
