# vaultcrd

Python models for the `vault.banzaicloud.com/v1alpha1` `Vault` custom resource,
together with the logic that derives runtime settings from it.

## What it provides

- `vaultcrd.spec.VaultSpec`: the desired state of a Vault cluster, read with
  `VaultSpec.from_dict` and written with `to_dict`. It reads the storage and
  HA storage stanzas (`storage_type`, `ha_storage_type`, `storage`,
  `ha_storage`, `etcd_storage`, `has_ha_storage`, `has_etcd_storage`,
  `is_raft_storage`, `is_raft_ha_storage`), the TLS and telemetry settings
  (`is_tls_disabled`, `api_scheme`, `api_port_name`,
  `is_telemetry_unauthenticated`) and the Vault version from the image tag
  (`version`). It fills in defaults for images (`vault_image`,
  `bank_vaults_image_name`, which falls back to the `BANK_VAULTS_IMAGE`
  environment variable, `statsd_image_name`, `fluentd_image_name`,
  `velero_fsfreeze_image_name`), the etcd size and version
  (`etcd_size_effective`, `etcd_version`), the service account
  (`service_account_name`) and the TLS expiry threshold
  (`tls_expiry_threshold_duration`, 168 hours unless set).
- `vaultcrd.vault.Vault`: the full resource, with `ObjectMeta`, `VaultStatus`
  and `VaultList` alongside. `config_json` renders the effective Vault server
  configuration, adding service registration and etcd client certificate
  paths where they apply; `ingress` completes the Ingress settings;
  `labels_for_vault`, `labels_for_vault_configurer` and `as_owner_reference`
  give selector labels and an `OwnerReference`.
- `vaultcrd.unseal.UnsealConfig`: turns an unseal configuration (Kubernetes
  secret, Google KMS, Azure Key Vault, AWS KMS, Alibaba KMS, remote Vault or
  HSM) into unsealer command-line arguments with `to_args`, and tells with
  `hsm_daemon_needed` whether an HSM daemon is required.
- `vaultcrd.resources`: `CredentialsConfig`, `Resources` and `Ingress`.
- `vaultcrd.pod_spec.EmbeddedPodSpec`, `vaultcrd.pvc.EmbeddedPersistentVolumeClaim`
  and `vaultcrd.metadata.EmbeddedObjectMetadata`: the pod spec snippets and
  volume claim templates embedded in a Vault spec.
- `vaultcrd.lister`: an `Indexer` cache with `VaultLister` and
  `VaultNamespaceLister` for listing by label selector and lookup by name;
  a missing name raises `NotFoundError`.
- `vaultcrd.fake_client`: `FakeVaultV1alpha1`, an in-memory client for tests
  that supports get, list, create, update, delete, delete-collection and JSON
  merge patch, and records each call in `actions`.
- `vaultcrd.duration.parse_duration` and `vaultcrd.versions.Version`: helpers
  for duration strings such as `"168h"` and for semantic versions.

## Installation

```
pip install vaultcrd
```

## Example

```python
from vaultcrd.vault import Vault

vault = Vault.from_dict({
    "metadata": {"name": "vault", "namespace": "default"},
    "spec": {
        "image": "vault:1.6.2",
        "config": {
            "storage": {"file": {"path": "/vault/file"}},
            "listener": {"tcp": {"address": "0.0.0.0:8200", "tls_disable": True}},
        },
    },
})

vault.spec.storage_type()        # "file"
vault.spec.api_scheme()          # "http"
str(vault.spec.version())        # "1.6.2"
vault.spec.unseal_config.to_args(vault)
# ['--mode', 'k8s', '--k8s-secret-namespace', 'default',
#  '--k8s-secret-name', 'vault-unseal-keys',
#  '--k8s-secret-labels', 'app.kubernetes.io/name=vault,vault_cr=vault']
```

An in-memory client is handy in tests:

```python
from vaultcrd.fake_client import FakeVaultV1alpha1

client = FakeVaultV1alpha1()
vaults = client.vaults("default")
vaults.create(vault)
vaults.get("vault").metadata.name   # "vault"
```

## What it does not do

The package only models the resource and works on data in memory. It has no
client that talks to a Kubernetes API server, no watching or informers, no
registry of group/version/kind types, and no operator or command that
reconciles Vault clusters.

## Running the tests

```
pip install -e ".[test]"
pytest
```