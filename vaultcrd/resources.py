"""Credentials, resource requirements and ingress settings of a Vault spec."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

__all__ = ["CredentialsConfig", "Ingress", "Resources"]


def _require_mapping(what: str, data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise TypeError(f"{what} must be a mapping, got {type(data).__name__}")
    return data


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _optional_object(data: Mapping[str, Any], key: str) -> dict[str, Any] | None:
    value = data.get(key)
    if value is None:
        return None
    return copy.deepcopy(dict(_require_mapping(key, value)))


def _string_map(data: Mapping[str, Any], key: str) -> dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    for name, item in _require_mapping(key, value).items():
        if not isinstance(name, str) or not isinstance(item, str):
            raise TypeError(f"{key} must map strings to strings")
    return dict(value)


@dataclass
class CredentialsConfig:
    """An external secret holding credentials and where to mount it."""

    env: str = ""
    path: str = ""
    secret_name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "CredentialsConfig":
        """Build from the JSON form; missing fields are empty strings."""
        if data is None:
            return cls()
        data = _require_mapping("credentials config", data)
        return cls(
            env=_string(data, "env"),
            path=_string(data, "path"),
            secret_name=_string(data, "secretName"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; every field is always present."""
        return {"env": self.env, "path": self.path, "secretName": self.secret_name}


def _requirements(json_key: str) -> Any:
    return field(default=None, metadata={"json": json_key})


@dataclass
class Resources:
    """Resource requirements of the containers the operator creates.

    Each entry is a container resource requirements object in its JSON form,
    or ``None`` when not given.
    """

    vault: dict[str, Any] | None = _requirements("vault")
    bank_vaults: dict[str, Any] | None = _requirements("bankVaults")
    hsm_daemon: dict[str, Any] | None = _requirements("hsmDaemon")
    etcd: dict[str, Any] | None = _requirements("etcd")
    prometheus_exporter: dict[str, Any] | None = _requirements("prometheusExporter")
    fluentd: dict[str, Any] | None = _requirements("fluentd")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Resources":
        """Build from the JSON form; missing entries stay ``None``."""
        if data is None:
            return cls()
        data = _require_mapping("resources", data)
        return cls(
            **{f.name: _optional_object(data, f.metadata["json"]) for f in fields(cls)}
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out entries that are ``None``."""
        return {
            f.metadata["json"]: copy.deepcopy(getattr(self, f.name))
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass
class Ingress:
    """Ingress annotations and spec for the Vault service.

    The spec is kept in its JSON form as a plain mapping.
    """

    annotations: dict[str, str] = field(default_factory=dict)
    spec: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Ingress":
        """Build from the JSON form; missing fields take their empty values."""
        if data is None:
            return cls()
        data = _require_mapping("ingress", data)
        return cls(
            annotations=_string_map(data, "annotations"),
            spec=_optional_object(data, "spec") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out empty fields."""
        result: dict[str, Any] = {}
        if self.annotations:
            result["annotations"] = dict(self.annotations)
        if self.spec:
            result["spec"] = copy.deepcopy(self.spec)
        return result