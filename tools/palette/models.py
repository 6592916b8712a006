"""Record types shared by the auth and work data services.

Stored JSON uses camelCase field names (``imageData``, ``savedAt``, ...) so
blobs written by a browser frontend and by this package are interchangeable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Union

Number = Union[int, float]


@dataclass(frozen=True)
class User:
    """An authenticated user. The username is the identity."""

    username: str

    def to_dict(self) -> dict[str, Any]:
        return {"username": self.username}


_COLOR_KEYS = ("r", "g", "b")
_WORK_KEYS = ("id", "name", "imageData", "colorHistory", "currentColor", "dominantColors", "savedAt")


def _extra(data: Mapping[str, Any], known) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k not in known}


@dataclass(frozen=True)
class Color:
    """An RGB color. Channels are nominally 0-255 but not range checked.

    Keys other than r, g and b (an alpha channel, say) ride along in ``extra``.
    """

    r: Number
    g: Number
    b: Number
    extra: dict[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {**self.extra, "r": self.r, "g": self.g, "b": self.b}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Color":
        return cls(r=data["r"], g=data["g"], b=data["b"], extra=_extra(data, _COLOR_KEYS))


def _colors(items: Optional[List[Any]]) -> List[Color]:
    return [c if isinstance(c, Color) else Color.from_dict(c) for c in items or []]


def _color(item: Any) -> Optional[Color]:
    if item is None or isinstance(item, Color):
        return item
    return Color.from_dict(item)


@dataclass
class WorkDraft:
    """Caller-supplied part of a work record, before id and timestamp exist.

    Fields outside the work schema are kept in ``extra`` and stored with the
    record.
    """

    name: str
    image_data: str
    color_history: List[Color] = field(default_factory=list)
    current_color: Optional[Color] = None
    dominant_colors: List[Color] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorkDraft":
        """Build a draft from a camelCase mapping.

        ``id`` and ``savedAt`` keys, if present, are dropped: both are
        assigned when the work is saved.
        """
        return cls(
            name=data["name"],
            image_data=data["imageData"],
            color_history=_colors(data.get("colorHistory")),
            current_color=_color(data.get("currentColor")),
            dominant_colors=_colors(data.get("dominantColors")),
            extra=_extra(data, _WORK_KEYS),
        )


@dataclass
class WorkData:
    """A saved snapshot of image and color editing state."""

    id: str
    name: str
    image_data: str
    color_history: List[Color]
    current_color: Optional[Color]
    dominant_colors: List[Color]
    saved_at: str
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_draft(cls, draft: WorkDraft, work_id: str, saved_at: str) -> "WorkData":
        return cls(
            id=work_id,
            name=draft.name,
            image_data=draft.image_data,
            color_history=list(draft.color_history),
            current_color=draft.current_color,
            dominant_colors=list(draft.dominant_colors),
            saved_at=saved_at,
            extra=dict(draft.extra),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.extra,
            "id": self.id,
            "name": self.name,
            "imageData": self.image_data,
            "colorHistory": [c.to_dict() for c in self.color_history],
            "currentColor": self.current_color.to_dict() if self.current_color else None,
            "dominantColors": [c.to_dict() for c in self.dominant_colors],
            "savedAt": self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorkData":
        return cls(
            id=data["id"],
            name=data["name"],
            image_data=data["imageData"],
            color_history=_colors(data.get("colorHistory")),
            current_color=_color(data.get("currentColor")),
            dominant_colors=_colors(data.get("dominantColors")),
            saved_at=data["savedAt"],
            extra=_extra(data, _WORK_KEYS),
        )

    @property
    def saved_at_datetime(self) -> Optional[datetime]:
        """``saved_at`` parsed as an aware datetime, or None if unparseable."""
        return parse_timestamp(self.saved_at)


def format_timestamp(moment: datetime) -> str:
    """Format like JavaScript's ``Date.toISOString()``: UTC, millisecond precision."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
