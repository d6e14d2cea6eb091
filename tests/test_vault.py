import json

import pytest

from vaultcrd.resources import Ingress
from vaultcrd.spec import VaultSpec
from vaultcrd.unseal import UnsealConfig
from vaultcrd.vault import ObjectMeta, OwnerReference, Vault, VaultList, VaultStatus


def make_vault(config, name="vault", namespace="vault-ns", **spec_fields):
    return Vault(
        metadata=ObjectMeta(name=name, namespace=namespace, uid="uid-1"),
        spec=VaultSpec(config=config, **spec_fields),
        api_version="vault.banzaicloud.com/v1alpha1",
        kind="Vault",
    )


def test_config_json_plain():
    config = {"storage": {"file": {"path": "/vault/file"}}, "ui": True}
    vault = make_vault(config)
    assert json.loads(vault.config_json()) == config


def test_config_json_is_compact_and_sorted():
    vault = make_vault({"storage": {"file": {}}, "api_addr": "x"})
    text = vault.config_json().decode()
    assert " " not in text
    assert text.index("api_addr") < text.index("storage")


def test_config_json_service_registration():
    vault = make_vault({"storage": {"consul": {}}}, service_registration_enabled=True)
    config = json.loads(vault.config_json())
    assert config["service_registration"] == {"kubernetes": {"namespace": "vault-ns"}}


def test_config_json_no_service_registration_without_ha():
    vault = make_vault({"storage": {"file": {}}}, service_registration_enabled=True)
    assert "service_registration" not in json.loads(vault.config_json())


def test_config_json_etcd_tls_files():
    vault = make_vault({"storage": {"etcd": {"address": "https://etcd:2379"}}})
    etcd = json.loads(vault.config_json())["storage"]["etcd"]
    assert etcd["address"] == "https://etcd:2379"
    assert etcd["tls_ca_file"] == "/etcd/tls/etcd-client-ca.crt"
    assert {"tls_cert_file", "tls_key_file"} <= set(etcd)


def test_config_json_etcd_keeps_given_settings():
    vault = make_vault({"storage": {"etcd": {"tls_ca_file": "/mine/ca.crt"}}})
    etcd = json.loads(vault.config_json())["storage"]["etcd"]
    assert etcd["tls_ca_file"] == "/mine/ca.crt"


def test_config_json_etcd_in_ha_storage():
    vault = make_vault({"storage": {"gcs": {}}, "ha_storage": {"etcd": {}}})
    config = json.loads(vault.config_json())
    assert "tls_key_file" in config["ha_storage"]["etcd"]
    assert config["storage"] == {"gcs": {}}


def test_config_json_existing_etcd_cluster_untouched():
    config = {"storage": {"etcd": {"address": "a"}}}
    vault = make_vault(config, etcd_size=-1)
    assert json.loads(vault.config_json()) == config


def test_config_json_requires_object():
    with pytest.raises(ValueError):
        make_vault(None).config_json()


def test_ingress_default_backend_and_tls_annotations():
    vault = make_vault({}, ingress=Ingress())
    ingress = vault.ingress()
    assert ingress.spec["defaultBackend"] == {"service": {"name": "vault", "port": {"number": 8200}}}
    assert ingress.annotations["nginx.ingress.kubernetes.io/backend-protocol"] == "HTTPS"
    assert ingress.annotations["ingress.kubernetes.io/secure-backends"] == "true"


def test_ingress_with_rules_and_tls_disabled():
    rules = [{"host": "vault.example.com"}]
    vault = make_vault(
        {"listener": {"tcp": {"tls_disable": True}}}, ingress=Ingress(spec={"rules": rules})
    )
    ingress = vault.ingress()
    assert "defaultBackend" not in ingress.spec
    assert ingress.annotations == {}


def test_ingress_absent():
    assert make_vault({}).ingress() is None


def test_labels():
    vault = make_vault({}, name="prod")
    assert vault.labels_for_vault() == {"app.kubernetes.io/name": "vault", "vault_cr": "prod"}
    assert vault.labels_for_vault_configurer() == {
        "app.kubernetes.io/name": "vault-configurator",
        "vault_cr": "prod",
    }


def test_as_owner_reference():
    vault = make_vault({})
    assert vault.as_owner_reference() == OwnerReference(
        api_version="vault.banzaicloud.com/v1alpha1",
        kind="Vault",
        name="vault",
        uid="uid-1",
        controller=True,
    )


def test_unseal_args_use_vault_identity():
    args = UnsealConfig().to_args(make_vault({}, name="prod", namespace="ns"))
    assert args[args.index("--k8s-secret-name") + 1] == "prod-unseal-keys"
    assert args[args.index("--k8s-secret-namespace") + 1] == "ns"


def test_from_dict_round_trip():
    data = {
        "apiVersion": "vault.banzaicloud.com/v1alpha1",
        "kind": "Vault",
        "metadata": {"name": "vault", "namespace": "default", "labels": {"team": "ops"}},
        "spec": {"size": 1, "image": "vault:1.6.2", "config": {"storage": {"file": {}}}},
        "status": {"nodes": ["vault-0"], "leader": "vault-0"},
    }
    vault = Vault.from_dict(data)
    assert vault.name == "vault"
    assert vault.labels == {"team": "ops"}
    assert vault.status == VaultStatus(nodes=["vault-0"], leader="vault-0")
    assert Vault.from_dict(vault.to_dict()) == vault


def test_from_dict_rejects_bad_metadata():
    with pytest.raises(TypeError):
        Vault.from_dict({"metadata": {"name": 5}})


def test_vault_list_round_trip():
    data = {
        "apiVersion": "vault.banzaicloud.com/v1alpha1",
        "kind": "VaultList",
        "metadata": {"resourceVersion": "42"},
        "items": [{"metadata": {"name": "a"}}, {"metadata": {"name": "b"}}],
    }
    vault_list = VaultList.from_dict(data)
    assert [item.name for item in vault_list.items] == ["a", "b"]
    assert vault_list.resource_version == "42"
    assert VaultList.from_dict(vault_list.to_dict()) == vault_list