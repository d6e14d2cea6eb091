"""Where a Vault cluster's unseal keys and root token are kept."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any, Protocol, TypeVar

__all__ = [
    "AWSUnsealConfig",
    "AlibabaUnsealConfig",
    "AzureUnsealConfig",
    "GoogleUnsealConfig",
    "HSMUnsealConfig",
    "KubernetesUnsealConfig",
    "UnsealConfig",
    "UnsealOptions",
    "VaultLike",
]

_UINT_MAX = (1 << 64) - 1


class VaultLike(Protocol):
    """What unseal argument building needs to know about a Vault resource."""

    name: str
    namespace: str

    def labels_for_vault(self) -> Mapping[str, str]: ...


def _require_mapping(what: str, data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise TypeError(f"{what} must be a mapping, got {type(data).__name__}")
    return data


def _to_str(key: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _to_bool(key: str, value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise TypeError(f"{key} must be a boolean, got {type(value).__name__}")
    return value


def _to_uint(key: str, value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key} must be an integer, got {type(value).__name__}")
    if not 0 <= value <= _UINT_MAX:
        raise ValueError(f"{key} is out of range: {value}")
    return value


_CONVERTERS = {"str": _to_str, "bool": _to_bool, "uint": _to_uint}
_EMPTY = {"str": "", "bool": False, "uint": 0}


def _field(json_key: str, kind: str = "str", *, omitempty: bool = False) -> Any:
    return field(
        default=_EMPTY[kind],
        metadata={"json": json_key, "kind": kind, "omitempty": omitempty},
    )


_R = TypeVar("_R", bound="_Record")


class _Record:
    """Flat JSON record whose dataclass fields carry their JSON key and kind."""

    @classmethod
    def from_dict(cls: type[_R], data: Mapping[str, Any] | None) -> _R:
        """Build from the JSON form; missing fields take their empty values."""
        if data is None:
            return cls()
        data = _require_mapping(cls.__name__, data)
        values = {
            f.name: _CONVERTERS[f.metadata["kind"]](
                f.metadata["json"], data.get(f.metadata["json"])
            )
            for f in fields(cls)  # type: ignore[arg-type]
        }
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; empty fields marked to be omitted are left out."""
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if f.metadata["omitempty"] and not value:
                continue
            result[f.metadata["json"]] = value
        return result


@dataclass
class UnsealOptions:
    """Options common to every unsealing backend."""

    pre_flight_checks: bool | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "UnsealOptions":
        """Build from the JSON form."""
        if data is None:
            return cls()
        data = _require_mapping("unseal options", data)
        value = data.get("preFlightChecks")
        return cls(None if value is None else _to_bool("preFlightChecks", value))

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out an unset flag."""
        if self.pre_flight_checks is None:
            return {}
        return {"preFlightChecks": self.pre_flight_checks}

    def to_args(self) -> list[str]:
        """Return the command-line arguments; pre-flight checks default to on."""
        if self.pre_flight_checks is None or self.pre_flight_checks:
            return ["--pre-flight-checks", "true"]
        return []


@dataclass
class KubernetesUnsealConfig(_Record):
    """Parameters for unsealing from a Kubernetes secret."""

    secret_namespace: str = _field("secretNamespace", omitempty=True)
    secret_name: str = _field("secretName", omitempty=True)


@dataclass
class GoogleUnsealConfig(_Record):
    """Parameters for Google Cloud KMS based unsealing."""

    kms_key_ring: str = _field("kmsKeyRing")
    kms_crypto_key: str = _field("kmsCryptoKey")
    kms_location: str = _field("kmsLocation")
    kms_project: str = _field("kmsProject")
    storage_bucket: str = _field("storageBucket")


@dataclass
class AlibabaUnsealConfig(_Record):
    """Parameters for Alibaba Cloud KMS based unsealing."""

    kms_region: str = _field("kmsRegion")
    kms_key_id: str = _field("kmsKeyId")
    oss_endpoint: str = _field("ossEndpoint")
    oss_bucket: str = _field("ossBucket")
    oss_prefix: str = _field("ossPrefix")


@dataclass
class AzureUnsealConfig(_Record):
    """Parameters for Azure Key Vault based unsealing."""

    key_vault_name: str = _field("keyVaultName")


@dataclass
class AWSUnsealConfig(_Record):
    """Parameters for AWS KMS based unsealing."""

    kms_key_id: str = _field("kmsKeyId")
    kms_region: str = _field("kmsRegion", omitempty=True)
    s3_bucket: str = _field("s3Bucket")
    s3_prefix: str = _field("s3Prefix")
    s3_region: str = _field("s3Region", omitempty=True)
    s3_sse: str = _field("s3SSE", omitempty=True)


@dataclass
class VaultUnsealConfig(_Record):
    """Parameters for unsealing from a remote Vault."""

    address: str = _field("address")
    unseal_keys_path: str = _field("unsealKeysPath")
    role: str = _field("role", omitempty=True)
    auth_path: str = _field("authPath", omitempty=True)
    token_path: str = _field("tokenPath", omitempty=True)
    token: str = _field("token", omitempty=True)


@dataclass
class HSMUnsealConfig(_Record):
    """Parameters for HSM based unsealing."""

    daemon: bool = _field("daemon", "bool", omitempty=True)
    module_path: str = _field("modulePath")
    slot_id: int = _field("slotId", "uint", omitempty=True)
    token_label: str = _field("tokenLabel", omitempty=True)
    pin: str = _field("pin")
    key_label: str = _field("keyLabel")


_BACKENDS: tuple[tuple[str, str, type[_Record]], ...] = (
    ("google", "google", GoogleUnsealConfig),
    ("alibaba", "alibaba", AlibabaUnsealConfig),
    ("azure", "azure", AzureUnsealConfig),
    ("aws", "aws", AWSUnsealConfig),
    ("vault", "vault", VaultUnsealConfig),
    ("hsm", "hsm", HSMUnsealConfig),
)


def _secret_labels(vault: VaultLike) -> str:
    return ",".join(sorted(f"{k}={v}" for k, v in vault.labels_for_vault().items()))


@dataclass
class UnsealConfig:
    """The unsealing method of a Vault cluster.

    Only one backend is meant to be set; when several are, the first of
    Google, Azure, AWS, Alibaba, Vault and HSM wins, and with none set the
    keys are kept in a Kubernetes secret.
    """

    options: UnsealOptions = field(default_factory=UnsealOptions)
    kubernetes: KubernetesUnsealConfig = field(default_factory=KubernetesUnsealConfig)
    google: GoogleUnsealConfig | None = None
    alibaba: AlibabaUnsealConfig | None = None
    azure: AzureUnsealConfig | None = None
    aws: AWSUnsealConfig | None = None
    vault: VaultUnsealConfig | None = None
    hsm: HSMUnsealConfig | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "UnsealConfig":
        """Build from the JSON form; backends that are missing stay ``None``."""
        if data is None:
            return cls()
        data = _require_mapping("unseal config", data)
        backends = {
            attr: None if data.get(key) is None else record.from_dict(data[key])
            for attr, key, record in _BACKENDS
        }
        return cls(
            options=UnsealOptions.from_dict(data.get("options")),
            kubernetes=KubernetesUnsealConfig.from_dict(data.get("kubernetes")),
            **backends,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out backends that are not set."""
        result: dict[str, Any] = {
            "options": self.options.to_dict(),
            "kubernetes": self.kubernetes.to_dict(),
        }
        for attr, key, _ in _BACKENDS:
            backend = getattr(self, attr)
            if backend is not None:
                result[key] = backend.to_dict()
        return result

    def hsm_daemon_needed(self) -> bool:
        """Tell whether unsealing needs an HSM daemon next to Vault."""
        return self.hsm is not None and self.hsm.daemon

    def to_args(self, vault: VaultLike) -> list[str]:
        """Return the unsealing arguments for the bank-vaults command."""
        if self.google is not None:
            g = self.google
            return [
                "--mode", "google-cloud-kms-gcs",
                "--google-cloud-kms-key-ring", g.kms_key_ring,
                "--google-cloud-kms-crypto-key", g.kms_crypto_key,
                "--google-cloud-kms-location", g.kms_location,
                "--google-cloud-kms-project", g.kms_project,
                "--google-cloud-storage-bucket", g.storage_bucket,
            ]
        if self.azure is not None:
            return ["--mode", "azure-key-vault", "--azure-key-vault-name", self.azure.key_vault_name]
        if self.aws is not None:
            a = self.aws
            return [
                "--mode", "aws-kms-s3",
                "--aws-kms-key-id", a.kms_key_id,
                "--aws-kms-region", a.kms_region,
                "--aws-s3-bucket", a.s3_bucket,
                "--aws-s3-prefix", a.s3_prefix,
                "--aws-s3-region", a.s3_region,
                "--aws-s3-sse-algo", a.s3_sse,
            ]
        if self.alibaba is not None:
            al = self.alibaba
            return [
                "--mode", "alibaba-kms-oss",
                "--alibaba-kms-region", al.kms_region,
                "--alibaba-kms-key-id", al.kms_key_id,
                "--alibaba-oss-endpoint", al.oss_endpoint,
                "--alibaba-oss-bucket", al.oss_bucket,
                "--alibaba-oss-prefix", al.oss_prefix,
            ]
        if self.vault is not None:
            return self._remote_vault_args(self.vault)
        if self.hsm is not None:
            return self._hsm_args(self.hsm, vault)

        namespace = self.kubernetes.secret_namespace or vault.namespace
        name = self.kubernetes.secret_name or f"{vault.name}-unseal-keys"
        return [
            "--mode", "k8s",
            "--k8s-secret-namespace", namespace,
            "--k8s-secret-name", name,
            "--k8s-secret-labels", _secret_labels(vault),
        ]

    @staticmethod
    def _remote_vault_args(remote: VaultUnsealConfig) -> list[str]:
        args = [
            "--mode", "vault",
            "--vault-addr", remote.address,
            "--vault-unseal-keys-path", remote.unseal_keys_path,
        ]
        if remote.token:
            args += ["--vault-token", remote.token]
        elif remote.token_path:
            args += ["--vault-token-path", remote.token_path]
        elif remote.role:
            args += ["--vault-role", remote.role, "--vault-auth-path", remote.auth_path]
        return args

    def _hsm_args(self, hsm: HSMUnsealConfig, vault: VaultLike) -> list[str]:
        k8s = self.kubernetes
        with_secret = bool(k8s.secret_namespace and k8s.secret_name)
        args = [
            "--mode", "hsm-k8s" if with_secret else "hsm",
            "--hsm-module-path", hsm.module_path,
            "--hsm-slot-id", str(hsm.slot_id),
            "--hsm-key-label", hsm.key_label,
            "--hsm-pin", hsm.pin,
        ]
        if hsm.token_label:
            args += ["--hsm-token-label", hsm.token_label]
        if with_secret:
            args += [
                "--k8s-secret-namespace", k8s.secret_namespace,
                "--k8s-secret-name", k8s.secret_name,
                "--k8s-secret-labels", _secret_labels(vault),
            ]
        return args