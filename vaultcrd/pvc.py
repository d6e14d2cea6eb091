"""Persistent volume claim templates embedded in a Vault spec."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from vaultcrd.metadata import EmbeddedObjectMetadata

__all__ = ["EmbeddedPersistentVolumeClaim"]


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


@dataclass
class EmbeddedPersistentVolumeClaim:
    """A claim with type information, reduced metadata and a claim spec.

    The spec is kept in its JSON form, as a plain mapping.
    """

    api_version: str = ""
    kind: str = ""
    metadata: EmbeddedObjectMetadata = field(default_factory=EmbeddedObjectMetadata)
    spec: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any] | None
    ) -> "EmbeddedPersistentVolumeClaim":
        """Build from the JSON form; missing fields take their empty values."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise TypeError(
                f"volume claim template must be a mapping, got {type(data).__name__}"
            )
        spec = data.get("spec")
        if spec is None:
            spec = {}
        elif not isinstance(spec, Mapping):
            raise TypeError(f"spec must be a mapping, got {type(spec).__name__}")
        return cls(
            api_version=_string(data, "apiVersion"),
            kind=_string(data, "kind"),
            metadata=EmbeddedObjectMetadata.from_dict(data.get("metadata")),
            spec=copy.deepcopy(dict(spec)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; type fields are left out when empty."""
        result: dict[str, Any] = {}
        if self.api_version:
            result["apiVersion"] = self.api_version
        if self.kind:
            result["kind"] = self.kind
        result["metadata"] = self.metadata.to_dict()
        result["spec"] = copy.deepcopy(self.spec)
        return result

    def to_persistent_volume_claim(self) -> dict[str, Any]:
        """Return a plain claim holding only the name, labels, annotations and spec.

        The type information is dropped so that a claim compared with the
        cluster's copy shows no spurious difference.
        """
        return {
            "metadata": self.metadata.to_dict(),
            "spec": copy.deepcopy(self.spec),
        }