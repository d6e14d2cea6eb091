"""The desired state of a Vault cluster and what can be derived from it."""

from __future__ import annotations

import copy
import json
import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from datetime import timedelta
from typing import Any

from vaultcrd.duration import DurationError, parse_duration
from vaultcrd.pod_spec import EmbeddedPodSpec
from vaultcrd.pvc import EmbeddedPersistentVolumeClaim
from vaultcrd.resources import CredentialsConfig, Ingress, Resources
from vaultcrd.unseal import UnsealConfig
from vaultcrd.versions import InvalidVersionError, Version

__all__ = [
    "DEFAULT_BANK_VAULTS_IMAGE",
    "DEFAULT_TLS_EXPIRY_THRESHOLD",
    "HA_STORAGE_TYPES",
    "VaultSpec",
]

log = logging.getLogger("vaultcrd.controller_vault")

DEFAULT_BANK_VAULTS_IMAGE = "ghcr.io/banzaicloud/bank-vaults:latest"
DEFAULT_TLS_EXPIRY_THRESHOLD = timedelta(hours=168)

# Storage backends supporting High Availability.
HA_STORAGE_TYPES = frozenset(
    {
        "consul",
        "dynamodb",
        "etcd",
        "gcs",
        "mysql",
        "postgresql",
        "raft",
        "spanner",
        "zookeeper",
    }
)

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})


def _to_string_map(value: Any) -> dict[str, Any]:
    """Loosely turn a configuration value into a string-keyed mapping."""
    if isinstance(value, Mapping):
        return {str(k): v for k, v in value.items()}
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _to_bool(value: Any) -> bool:
    """Loosely turn a configuration value into a boolean.

    Booleans are taken as they are and strings are parsed; JSON numbers and
    anything else count as false.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value in _TRUE_WORDS
    return False


# Field converters: each takes the JSON key and the raw value (None if missing).


def _str(key: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _bool(key: str, value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise TypeError(f"{key} must be a boolean, got {type(value).__name__}")
    return value


def _check_int(key: str, value: Any, bits: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key} must be an integer, got {type(value).__name__}")
    if not -(1 << (bits - 1)) <= value < (1 << (bits - 1)):
        raise ValueError(f"{key} is out of range: {value}")
    return value


def _integer(bits: int) -> Callable[[str, Any], int]:
    def convert(key: str, value: Any) -> int:
        return 0 if value is None else _check_int(key, value, bits)

    return convert


def _require_mapping(key: str, value: Any) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise TypeError(f"{key} must be a mapping, got {type(value).__name__}")
    return value


def _require_list(key: str, value: Any) -> list[Any]:
    if not isinstance(value, list):
        raise TypeError(f"{key} must be a list, got {type(value).__name__}")
    return value


def _str_list(key: str, value: Any) -> list[str]:
    if value is None:
        return []
    return [_str(key, item) for item in _require_list(key, value)]


def _str_map(key: str, value: Any) -> dict[str, str]:
    if value is None:
        return {}
    result: dict[str, str] = {}
    for name, item in _require_mapping(key, value).items():
        if not isinstance(name, str) or not isinstance(item, str):
            raise TypeError(f"{key} must map strings to strings")
        result[name] = item
    return result


def _str_map_list(key: str, value: Any) -> list[dict[str, str]]:
    if value is None:
        return []
    return [_str_map(key, item) for item in _require_list(key, value)]


def _obj(key: str, value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    return copy.deepcopy(dict(_require_mapping(key, value)))


def _opt_obj(key: str, value: Any) -> dict[str, Any] | None:
    if value is None:
        return None
    return _obj(key, value)


def _obj_list(key: str, value: Any) -> list[dict[str, Any]]:
    if value is None:
        return []
    return [_obj(key, item) for item in _require_list(key, value)]


def _json_value(key: str, value: Any) -> Any:
    return copy.deepcopy(value)


def _int32_map(key: str, value: Any) -> dict[str, int]:
    if value is None:
        return {}
    result: dict[str, int] = {}
    for name, item in _require_mapping(key, value).items():
        if not isinstance(name, str):
            raise TypeError(f"keys of {key} must be strings")
        result[name] = _check_int(key, item, 32)
    return result


def _nested(cls: Any) -> Callable[[str, Any], Any]:
    def convert(key: str, value: Any) -> Any:
        return cls.from_dict(value)

    return convert


def _optional_nested(cls: Any) -> Callable[[str, Any], Any]:
    def convert(key: str, value: Any) -> Any:
        return None if value is None else cls.from_dict(value)

    return convert


def _nested_list(cls: Any) -> Callable[[str, Any], list[Any]]:
    def convert(key: str, value: Any) -> list[Any]:
        if value is None:
            return []
        return [cls.from_dict(item) for item in _require_list(key, value)]

    return convert


def _f(json_key: str, convert: Callable[[str, Any], Any], *, omitempty: bool = True) -> Any:
    info = {"json": json_key, "convert": convert, "omitempty": omitempty}
    empty = convert(json_key, None)
    if empty is None or isinstance(empty, (str, int, float)):
        return field(default=empty, metadata=info)
    return field(default_factory=lambda: convert(json_key, None), metadata=info)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, (str, int, float, list, dict)) and not value


def _dump(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return copy.deepcopy(value)


@dataclass
class VaultSpec:
    """The desired state of a Vault cluster.

    ``config`` and ``external_config`` hold parsed JSON; nested Kubernetes
    objects such as containers, volumes and affinities are plain mappings.
    """

    size: int = _f("size", _integer(32))
    image: str = _f("image", _str)
    bank_vaults_image: str = _f("bankVaultsImage", _str)
    bank_vaults_volume_mounts: list[dict[str, Any]] = _f("bankVaultsVolumeMounts", _obj_list)
    statsd_disabled: bool = _f("statsdDisabled", _bool)
    statsd_image: str = _f("statsdImage", _str)
    fluentd_enabled: bool = _f("fluentdEnabled", _bool)
    fluentd_image: str = _f("fluentdImage", _str)
    fluentd_conf_location: str = _f("fleuntdConfLocation", _str)
    fluentd_config: str = _f("fluentdConfig", _str)
    watched_secrets_labels: list[dict[str, str]] = _f("watchedSecretsLabels", _str_map_list)
    watched_secrets_annotations: list[dict[str, str]] = _f(
        "watchedSecretsAnnotations", _str_map_list
    )
    annotations: dict[str, str] = _f("annotations", _str_map)
    vault_annotations: dict[str, str] = _f("vaultAnnotations", _str_map)
    vault_labels: dict[str, str] = _f("vaultLabels", _str_map)
    vault_pod_spec: EmbeddedPodSpec | None = _f("vaultPodSpec", _optional_nested(EmbeddedPodSpec))
    vault_container_spec: dict[str, Any] = _f("vaultContainerSpec", _obj, omitempty=False)
    vault_configurer_annotations: dict[str, str] = _f("vaultConfigurerAnnotations", _str_map)
    vault_configurer_labels: dict[str, str] = _f("vaultConfigurerLabels", _str_map)
    vault_configurer_pod_spec: EmbeddedPodSpec | None = _f(
        "vaultConfigurerPodSpec", _optional_nested(EmbeddedPodSpec)
    )
    config: Any = _f("config", _json_value, omitempty=False)
    external_config: Any = _f("externalConfig", _json_value)
    unseal_config: UnsealConfig = _f("unsealConfig", _nested(UnsealConfig), omitempty=False)
    credentials_config: CredentialsConfig = _f(
        "credentialsConfig", _nested(CredentialsConfig), omitempty=False
    )
    envs_config: list[dict[str, Any]] = _f("envsConfig", _obj_list)
    security_context: dict[str, Any] = _f("securityContext", _obj, omitempty=False)
    requested_etcd_version: str = _f("etcdVersion", _str)
    etcd_size: int = _f("etcdSize", _integer(64))
    etcd_repository: str = _f("etcdRepository", _str)
    etcd_pod_busybox_image: str = _f("etcdPodBusyBoxImage", _str)
    etcd_annotations: dict[str, str] = _f("etcdAnnotations", _str_map)
    etcd_pod_annotations: dict[str, str] = _f("etcdPodAnnotations", _str_map)
    etcd_pvc_spec: dict[str, Any] | None = _f("etcdPVCSpec", _opt_obj)
    etcd_affinity: dict[str, Any] | None = _f("etcdAffinity", _opt_obj)
    service_type: str = _f("serviceType", _str)
    load_balancer_ip: str = _f("loadBalancerIP", _str)
    service_registration_enabled: bool = _f("serviceRegistrationEnabled", _bool)
    raft_leader_address: str = _f("raftLeaderAddress", _str)
    service_ports: dict[str, int] = _f("servicePorts", _int32_map)
    affinity: dict[str, Any] | None = _f("affinity", _opt_obj)
    pod_anti_affinity: str = _f("podAntiAffinity", _str)
    node_affinity: dict[str, Any] = _f("nodeAffinity", _obj, omitempty=False)
    node_selector: dict[str, str] = _f("nodeSelector", _str_map)
    tolerations: list[dict[str, Any]] = _f("tolerations", _obj_list)
    service_account: str = _f("serviceAccount", _str)
    volumes: list[dict[str, Any]] = _f("volumes", _obj_list)
    volume_mounts: list[dict[str, Any]] = _f("volumeMounts", _obj_list)
    volume_claim_templates: list[EmbeddedPersistentVolumeClaim] = _f(
        "volumeClaimTemplates", _nested_list(EmbeddedPersistentVolumeClaim)
    )
    vault_envs_config: list[dict[str, Any]] = _f("vaultEnvsConfig", _obj_list)
    sidecar_envs_config: list[dict[str, Any]] = _f("sidecarEnvsConfig", _obj_list)
    resources: Resources | None = _f("resources", _optional_nested(Resources))
    ingress: Ingress | None = _f("ingress", _optional_nested(Ingress))
    service_monitor_enabled: bool = _f("serviceMonitorEnabled", _bool)
    existing_tls_secret_name: str = _f("existingTlsSecretName", _str)
    tls_expiry_threshold: str = _f("tlsExpiryThreshold", _str)
    tls_additional_hosts: list[str] = _f("tlsAdditionalHosts", _str_list)
    ca_namespaces: list[str] = _f("caNamespaces", _str_list)
    istio_enabled: bool = _f("istioEnabled", _bool)
    velero_enabled: bool = _f("veleroEnabled", _bool)
    velero_fsfreeze_image: str = _f("veleroFsfreezeImage", _str)
    vault_init_containers: list[dict[str, Any]] = _f("vaultInitContainers", _obj_list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "VaultSpec":
        """Build from the JSON form; unknown keys are ignored."""
        if data is None:
            return cls()
        data = _require_mapping("spec", data)
        return cls(
            **{
                f.name: f.metadata["convert"](f.metadata["json"], data.get(f.metadata["json"]))
                for f in fields(cls)
            }
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out empty optional fields."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.metadata["omitempty"] and _is_empty(value):
                continue
            result[f.metadata["json"]] = _dump(value)
        return result

    # Vault server configuration

    def vault_config(self) -> dict[str, Any]:
        """Return a copy of the Vault server configuration, or ``{}`` if it is not an object."""
        if isinstance(self.config, Mapping):
            return copy.deepcopy(dict(self.config))
        return {}

    def _storage_section(self) -> dict[str, Any]:
        return _to_string_map(self.vault_config().get("storage"))

    def _ha_storage_section(self) -> dict[str, Any]:
        return _to_string_map(self.vault_config().get("ha_storage"))

    def _has_ha_storage_stanza(self) -> bool:
        return bool(self._ha_storage_section())

    def _listener_tcp(self) -> dict[str, Any]:
        listener = _to_string_map(self.vault_config().get("listener"))
        return _to_string_map(listener.get("tcp"))

    def storage_type(self) -> str:
        """Return the type of the storage stanza; raise ``ValueError`` if there is none."""
        section = self._storage_section()
        if not section:
            raise ValueError("Vault configuration has no storage stanza")
        return next(iter(section))

    def ha_storage_type(self) -> str:
        """Return the type of the ha_storage stanza, or ``""`` if there is none."""
        section = self._ha_storage_section()
        if not section:
            return ""
        return next(iter(section))

    def storage(self) -> dict[str, Any]:
        """Return the settings of the storage stanza."""
        return _to_string_map(self._storage_section().get(self.storage_type()))

    def ha_storage(self) -> dict[str, Any]:
        """Return the settings of the ha_storage stanza."""
        return _to_string_map(self._ha_storage_section().get(self.ha_storage_type()))

    def has_storage_ha_enabled(self) -> bool:
        """Tell whether HA is on for the storage; always so for consul and raft."""
        storage_type = self.storage_type()
        settings = _to_string_map(self._storage_section().get(storage_type))
        return storage_type in ("consul", "raft") or _to_bool(settings.get("ha_enabled"))

    def has_ha_storage(self) -> bool:
        """Tell whether the storage supports HA with it enabled, or an ha_storage stanza exists."""
        if self.storage_type() in HA_STORAGE_TYPES and self.has_storage_ha_enabled():
            return True
        return self._has_ha_storage_stanza()

    def has_etcd_storage(self) -> bool:
        """Tell whether etcd is used as storage or ha_storage."""
        if self._has_ha_storage_stanza() and self.ha_storage_type() == "etcd":
            return True
        return self.storage_type() == "etcd"

    def etcd_storage(self) -> dict[str, Any] | None:
        """Return the etcd storage settings, or ``None`` if etcd is not used."""
        if self._has_ha_storage_stanza() and self.ha_storage_type() == "etcd":
            return self.ha_storage()
        if self.storage_type() == "etcd":
            return self.storage()
        return None

    def is_tls_disabled(self) -> bool:
        """Tell whether TLS is disabled on the TCP listener."""
        return _to_bool(self._listener_tcp().get("tls_disable"))

    def is_telemetry_unauthenticated(self) -> bool:
        """Tell whether the telemetry endpoint is open without authentication."""
        telemetry = _to_string_map(self._listener_tcp().get("telemetry"))
        return _to_bool(telemetry.get("unauthenticated_metrics_access"))

    def api_scheme(self) -> str:
        """Return ``"http"`` or ``"https"`` for the API address."""
        return "http" if self.is_tls_disabled() else "https"

    def api_port_name(self) -> str:
        """Return the name of the main Vault port, prefixed for Istio."""
        port_name = "api-port"
        if self.istio_enabled:
            prefix = "http-" if self.is_tls_disabled() else "https-"
            return prefix + port_name
        return port_name

    def is_auto_unseal(self) -> bool:
        """Tell whether a seal stanza configures auto-unseal."""
        return "seal" in self.vault_config()

    def is_raft_storage(self) -> bool:
        """Tell whether raft is the storage."""
        return self.storage_type() == "raft"

    def is_raft_ha_storage(self) -> bool:
        """Tell whether raft is the ha_storage next to a different storage."""
        return self.storage_type() != "raft" and self.ha_storage_type() == "raft"

    def is_raft_bootstrap_follower(self) -> bool:
        """Tell whether this cluster follows a raft leader given by address."""
        return self.raft_leader_address not in ("", "self")

    def external_config_json(self) -> bytes | None:
        """Return the external configuration as JSON, or ``None`` if unset."""
        if self.external_config is None:
            return None
        return json.dumps(self.external_config).encode()

    # Images, versions and sizes

    def version(self) -> Version:
        """Return the Vault version from the image tag."""
        parts = self.image.split(":")
        if len(parts) != 2:
            raise InvalidVersionError("failed to find Vault version")
        return Version.parse(parts[1])

    def etcd_version(self) -> str:
        """Return the etcd version to use."""
        return self.requested_etcd_version or "3.3.17"

    def etcd_size_effective(self) -> int:
        """Return the number of etcd pods: -1 for an existing cluster, odd otherwise."""
        if self.etcd_size < 0:
            return -1
        if self.etcd_size < 1:
            return 3
        # An odd-size cluster tolerates as many failures as the next even size.
        if self.etcd_size % 2 == 0:
            return self.etcd_size - 1
        return self.etcd_size

    def service_account_name(self) -> str:
        """Return the service account Vault runs as."""
        return self.service_account or "default"

    def tls_expiry_threshold_duration(self) -> timedelta:
        """Return the TLS certificate expiry threshold, falling back to 168 hours."""
        if not self.tls_expiry_threshold:
            return DEFAULT_TLS_EXPIRY_THRESHOLD
        try:
            return parse_duration(self.tls_expiry_threshold)
        except DurationError as err:
            log.error(
                "using default threshold due to parse error: %s (tlsExpiryThreshold=%r)",
                err,
                self.tls_expiry_threshold,
            )
            return DEFAULT_TLS_EXPIRY_THRESHOLD

    def vault_image(self) -> str:
        """Return the Vault image to use."""
        return self.image or "vault:latest"

    def bank_vaults_image_name(self) -> str:
        """Return the bank-vaults image, defaulting to ``BANK_VAULTS_IMAGE`` from the environment."""
        if self.bank_vaults_image:
            return self.bank_vaults_image
        return os.environ.get("BANK_VAULTS_IMAGE") or DEFAULT_BANK_VAULTS_IMAGE

    def statsd_image_name(self) -> str:
        """Return the StatsD exporter image to use."""
        return self.statsd_image or "prom/statsd-exporter:latest"

    def velero_fsfreeze_image_name(self) -> str:
        """Return the Velero fsfreeze image to use."""
        return self.velero_fsfreeze_image or "ubuntu:bionic"

    def fluentd_image_name(self) -> str:
        """Return the FluentD image to use."""
        return self.fluentd_image or "fluent/fluentd:edge"

    def fluentd_conf_mount_path(self) -> str:
        """Return where fluent.conf is mounted."""
        return self.fluentd_conf_location or "/fluentd/etc"

    def volume_claim_templates_as_pvcs(self) -> list[dict[str, Any]]:
        """Return the claim templates as plain claims without type information."""
        return [pvc.to_persistent_volume_claim() for pvc in self.volume_claim_templates]