"""Style and map option records validated at the facade boundary.

Both accept camelCase keys (``outlineColor``) as well as snake_case so
records written for the browser engines can be passed through unchanged.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_COLOR = "#409eff"


class LayerStyle(BaseModel):
    """Style of one layer entry.  Unset fields fall back to per-kind defaults."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    color: Optional[str] = None
    opacity: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    size: Optional[float] = Field(default=None, ge=0.0)
    width: Optional[float] = Field(default=None, ge=0.0)
    outline: Optional[bool] = None
    outline_color: Optional[str] = None
    outline_width: Optional[float] = Field(default=None, ge=0.0)
    dasharray: Optional[list[float]] = None
    title: Optional[str] = None
    icon: Optional[str] = None
    offset: Optional[tuple[float, float]] = None
    # Engine-specific keys copied verbatim onto the native construct, last.
    native: dict[str, Any] = Field(default_factory=dict)

    @field_validator("color", "outline_color")
    @classmethod
    def _non_empty_color(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("color must be a non-empty CSS color string")
        return v

    def present(self) -> dict[str, Any]:
        """Fields the caller actually supplied (unset and None omitted)."""
        return self.model_dump(exclude_unset=True, exclude_none=True)

    def merged(self, delta: LayerStyle | dict | None) -> LayerStyle:
        """Return a copy with every field present in ``delta`` overriding ours.

        ``native`` dicts are merged key by key rather than replaced.
        """
        if delta is None:
            return self.model_copy(deep=True)
        if not isinstance(delta, LayerStyle):
            delta = LayerStyle.model_validate(delta)
        data = self.model_dump()
        changes = delta.present()
        native = {**data.get("native", {}), **changes.pop("native", {})}
        data.update(changes)
        data["native"] = native
        return LayerStyle.model_validate(data)


_KIND_DEFAULTS: dict[str, dict[str, Any]] = {
    "point": {
        "color": DEFAULT_COLOR,
        "opacity": 1.0,
        "size": 10.0,
        "outline": True,
        "outline_color": "#ffffff",
        "outline_width": 2.0,
    },
    "line": {
        "color": DEFAULT_COLOR,
        "opacity": 0.8,
        "width": 2.0,
        "dasharray": [],
    },
    "polygon": {
        "color": DEFAULT_COLOR,
        "opacity": 0.5,
        "outline": True,
        "outline_color": DEFAULT_COLOR,
        "outline_width": 1.0,
    },
}
_KIND_DEFAULTS["point-group"] = _KIND_DEFAULTS["point"]


def defaults_for(kind: Any) -> LayerStyle:
    """Documented default style for a geometry kind."""
    key = getattr(kind, "value", kind)
    return LayerStyle(**_KIND_DEFAULTS[key])


def resolve_style(kind: Any, style: LayerStyle | dict | None) -> LayerStyle:
    """Kind defaults with caller-supplied fields applied on top."""
    return defaults_for(kind).merged(style)


class MapOptions(BaseModel):
    """Options for ``MapFacade.init``.

    Recognized fields are merged over the provider defaults; any other key
    is passed to the backend engine untouched and wins over both.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    key: Optional[str] = None
    style: Optional[str] = None
    version: Optional[str] = None
    center: Optional[tuple[float, ...]] = None
    zoom: Optional[float] = None

    @field_validator("center")
    @classmethod
    def _center_arity(cls, v: Optional[tuple[float, ...]]) -> Optional[tuple[float, ...]]:
        if v is not None and len(v) not in (2, 3):
            raise ValueError("center must be [lng, lat] or [lng, lat, height]")
        return v

    def merged_over(self, defaults: dict[str, Any]) -> dict[str, Any]:
        """Provider defaults, then recognized fields, then passthrough extras."""
        merged = dict(defaults)
        recognized = self.model_dump(
            include={"key", "style", "version", "center", "zoom"},
            exclude_none=True,
        )
        merged.update(recognized)
        merged.update(self.model_extra or {})
        return merged
