"""The Vault custom resource and its list."""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from vaultcrd.resources import Ingress
from vaultcrd.spec import VaultSpec

__all__ = ["ObjectMeta", "OwnerReference", "Vault", "VaultList", "VaultStatus"]

# Client certificate files of a provisioned etcd cluster.
_ETCD_TLS_DIR = "/etcd/tls/"
_ETCD_CLIENT_CA_FILE = "etcd-client-ca.crt"
_ETCD_CLIENT_CERT_FILE = "etcd-client.crt"
_ETCD_CLIENT_KEY_FILE = "etcd-client.key"

_JSON_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


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


def _string_map(data: Mapping[str, Any], key: str) -> dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    result: dict[str, str] = {}
    for name, item in _require_mapping(key, value).items():
        if not isinstance(name, str) or not isinstance(item, str):
            raise TypeError(f"{key} must map strings to strings")
        result[name] = item
    return result


def _list(data: Mapping[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{key} must be a list, got {type(value).__name__}")
    return value


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, (str, int, float, list, dict)) and not value


def _merge(dst: dict[str, Any], src: Mapping[str, Any]) -> None:
    """Fill in what ``dst`` lacks from ``src``, descending into nested mappings.

    Values already present and not empty in ``dst`` are kept.
    """
    for key, value in src.items():
        current = dst.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            _merge(current, value)
        elif _is_empty(current):
            dst[key] = copy.deepcopy(value)


def _marshal(value: Any) -> bytes:
    text = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    for char, escape in _JSON_ESCAPES:
        text = text.replace(char, escape)
    return text.encode()


@dataclass
class ObjectMeta:
    """Identifying metadata of a resource."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ObjectMeta":
        """Build from the JSON form; missing fields take their empty values."""
        if data is None:
            return cls()
        data = _require_mapping("metadata", data)
        return cls(
            name=_string(data, "name"),
            namespace=_string(data, "namespace"),
            uid=_string(data, "uid"),
            resource_version=_string(data, "resourceVersion"),
            labels=_string_map(data, "labels"),
            annotations=_string_map(data, "annotations"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out empty fields."""
        pairs = (
            ("name", self.name),
            ("namespace", self.namespace),
            ("uid", self.uid),
            ("resourceVersion", self.resource_version),
            ("labels", dict(self.labels)),
            ("annotations", dict(self.annotations)),
        )
        return {key: value for key, value in pairs if value}


@dataclass
class OwnerReference:
    """A reference from a dependent object to the object owning it."""

    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form."""
        result: dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
        }
        if self.controller is not None:
            result["controller"] = self.controller
        return result


@dataclass
class VaultStatus:
    """The observed state of a Vault cluster."""

    nodes: list[str] = field(default_factory=list)
    leader: str = ""
    conditions: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "VaultStatus":
        """Build from the JSON form."""
        if data is None:
            return cls()
        data = _require_mapping("status", data)
        nodes = _list(data, "nodes")
        if not all(isinstance(node, str) for node in nodes):
            raise TypeError("nodes must be a list of strings")
        conditions = _list(data, "conditions")
        return cls(
            nodes=list(nodes),
            leader=_string(data, "leader"),
            conditions=[copy.deepcopy(dict(_require_mapping("condition", c))) for c in conditions],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; conditions are left out when empty."""
        result: dict[str, Any] = {"nodes": list(self.nodes), "leader": self.leader}
        if self.conditions:
            result["conditions"] = copy.deepcopy(self.conditions)
        return result


@dataclass
class Vault:
    """A Vault cluster resource."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: VaultSpec = field(default_factory=VaultSpec)
    status: VaultStatus = field(default_factory=VaultStatus)
    api_version: str = ""
    kind: str = ""

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def uid(self) -> str:
        return self.metadata.uid

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Vault":
        """Build from the JSON form of the resource."""
        if data is None:
            return cls()
        data = _require_mapping("vault", data)
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=VaultSpec.from_dict(data.get("spec")),
            status=VaultStatus.from_dict(data.get("status")),
            api_version=_string(data, "apiVersion"),
            kind=_string(data, "kind"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the resource."""
        result: dict[str, Any] = {}
        if self.api_version:
            result["apiVersion"] = self.api_version
        if self.kind:
            result["kind"] = self.kind
        result["metadata"] = self.metadata.to_dict()
        result["spec"] = self.spec.to_dict()
        result["status"] = self.status.to_dict()
        return result

    def config_json(self) -> bytes:
        """Return the Vault server configuration as JSON with generated settings filled in.

        Service registration is added when enabled with HA storage, and the
        client certificate files are filled in for an operator provisioned
        etcd cluster; settings already given are kept.
        """
        if not isinstance(self.spec.config, Mapping):
            raise ValueError("Vault config must be a JSON object")
        config = copy.deepcopy(dict(self.spec.config))

        if self.spec.service_registration_enabled and self.spec.has_ha_storage():
            _merge(
                config,
                {"service_registration": {"kubernetes": {"namespace": self.namespace}}},
            )

        if self.spec.has_etcd_storage() and self.spec.etcd_size_effective() > 0:
            storage_key = "storage"
            if self.spec._has_ha_storage_stanza() and self.spec.ha_storage_type() == "etcd":
                storage_key = "ha_storage"
            _merge(
                config,
                {
                    storage_key: {
                        "etcd": {
                            "tls_ca_file": _ETCD_TLS_DIR + _ETCD_CLIENT_CA_FILE,
                            "tls_cert_file": _ETCD_TLS_DIR + _ETCD_CLIENT_CERT_FILE,
                            "tls_key_file": _ETCD_TLS_DIR + _ETCD_CLIENT_KEY_FILE,
                        }
                    }
                },
            )

        return _marshal(config)

    def ingress(self) -> Ingress | None:
        """Return the ingress settings completed for this Vault, or ``None``.

        Without rules or a default backend the Vault service becomes the
        default backend; with TLS on, backend protocol annotations for the
        common ingress controllers are added.
        """
        ingress = self.spec.ingress
        if ingress is None:
            return None
        if not ingress.spec.get("rules") and ingress.spec.get("defaultBackend") is None:
            ingress.spec["defaultBackend"] = {
                "service": {"name": self.name, "port": {"number": 8200}}
            }
        if not self.spec.is_tls_disabled():
            ingress.annotations["nginx.ingress.kubernetes.io/backend-protocol"] = "HTTPS"
            ingress.annotations["ingress.kubernetes.io/protocol"] = "https"
            ingress.annotations["ingress.kubernetes.io/secure-backends"] = "true"
        return ingress

    def labels_for_vault(self) -> dict[str, str]:
        """Return the labels selecting resources of this Vault."""
        return {"app.kubernetes.io/name": "vault", "vault_cr": self.name}

    def labels_for_vault_configurer(self) -> dict[str, str]:
        """Return the labels selecting the configurer resources of this Vault."""
        return {"app.kubernetes.io/name": "vault-configurator", "vault_cr": self.name}

    def as_owner_reference(self) -> OwnerReference:
        """Return this Vault as the controlling owner of other objects."""
        return OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.name,
            uid=self.uid,
            controller=True,
        )


@dataclass
class VaultList:
    """A list of Vault resources."""

    items: list[Vault] = field(default_factory=list)
    resource_version: str = ""
    api_version: str = ""
    kind: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "VaultList":
        """Build from the JSON form of the list."""
        if data is None:
            return cls()
        data = _require_mapping("vault list", data)
        metadata = data.get("metadata")
        metadata = {} if metadata is None else _require_mapping("metadata", metadata)
        return cls(
            items=[Vault.from_dict(item) for item in _list(data, "items")],
            resource_version=_string(metadata, "resourceVersion"),
            api_version=_string(data, "apiVersion"),
            kind=_string(data, "kind"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the list."""
        result: dict[str, Any] = {}
        if self.api_version:
            result["apiVersion"] = self.api_version
        if self.kind:
            result["kind"] = self.kind
        metadata = {"resourceVersion": self.resource_version} if self.resource_version else {}
        result["metadata"] = metadata
        result["items"] = [item.to_dict() for item in self.items]
        return result