"""Reduced object metadata for resources embedded in a Vault spec."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

__all__ = ["EmbeddedObjectMetadata"]


def _string_map(data: Any, key: str) -> dict[str, str]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"{key} must be a mapping of strings, got {type(data).__name__}")
    result: dict[str, str] = {}
    for name, value in data.items():
        if not isinstance(name, str) or not isinstance(value, str):
            raise TypeError(f"{key} must map strings to strings")
        result[name] = value
    return result


@dataclass
class EmbeddedObjectMetadata:
    """The name, labels and annotations of an embedded resource."""

    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "EmbeddedObjectMetadata":
        """Build from the JSON form; missing fields take their empty values."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise TypeError(f"metadata must be a mapping, got {type(data).__name__}")
        name = data.get("name") or ""
        if not isinstance(name, str):
            raise TypeError("name must be a string")
        return cls(
            name=name,
            labels=_string_map(data.get("labels"), "labels"),
            annotations=_string_map(data.get("annotations"), "annotations"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out empty fields."""
        result: dict[str, Any] = {}
        if self.name:
            result["name"] = self.name
        if self.labels:
            result["labels"] = dict(self.labels)
        if self.annotations:
            result["annotations"] = dict(self.annotations)
        return result