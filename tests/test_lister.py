import pytest

from vaultcrd.lister import Indexer, NotFoundError, VaultLister, VaultNamespaceLister
from vaultcrd.vault import ObjectMeta, Vault


def make_vault(name, namespace="default", **labels):
    return Vault(metadata=ObjectMeta(name=name, namespace=namespace, labels=dict(labels)))


@pytest.fixture
def indexer():
    return Indexer(
        [
            make_vault("alpha", "default", app="vault", tier="prod"),
            make_vault("beta", "default", app="vault", tier="dev"),
            make_vault("gamma", "other", app="db"),
        ]
    )


def names(vaults):
    return [v.name for v in vaults]


def test_indexer_get_by_key(indexer):
    assert indexer.get_by_key("default/alpha").name == "alpha"
    assert indexer.get_by_key("default/missing") is None


def test_indexer_key_without_namespace():
    idx = Indexer([make_vault("solo", "")])
    assert idx.get_by_key("solo").name == "solo"


def test_indexer_list_is_ordered_by_key(indexer):
    assert names(indexer.list()) == ["alpha", "beta", "gamma"]


def test_indexer_update_replaces(indexer):
    replacement = make_vault("alpha", "default", app="changed")
    indexer.update(replacement)
    assert indexer.get_by_key("default/alpha") is replacement
    assert len(indexer) == 3


def test_indexer_delete(indexer):
    indexer.delete(make_vault("beta", "default"))
    assert indexer.get_by_key("default/beta") is None
    indexer.delete(make_vault("beta", "default"))
    assert len(indexer) == 2


def test_list_everything(indexer):
    lister = VaultLister(indexer)
    assert names(lister.list()) == ["alpha", "beta", "gamma"]
    assert names(lister.list("")) == ["alpha", "beta", "gamma"]


def test_list_with_mapping_selector(indexer):
    lister = VaultLister(indexer)
    assert names(lister.list({"app": "vault"})) == ["alpha", "beta"]
    assert names(lister.list({"app": "vault", "tier": "dev"})) == ["beta"]


@pytest.mark.parametrize(
    "selector, expected",
    [
        ("app=vault", ["alpha", "beta"]),
        ("app==vault", ["alpha", "beta"]),
        ("app!=vault", ["gamma"]),
        ("tier", ["alpha", "beta"]),
        ("!tier", ["gamma"]),
        ("tier in (prod, qa)", ["alpha"]),
        ("tier notin (prod)", ["beta", "gamma"]),
        ("app=vault,tier=prod", ["alpha"]),
        ("app=vault, tier notin (prod,dev)", []),
    ],
)
def test_list_with_string_selector(indexer, selector, expected):
    assert names(VaultLister(indexer).list(selector)) == expected


@pytest.mark.parametrize("selector", ["app in (a", "a=b)", "app in ()", "=x", "a,,b"])
def test_invalid_selector(indexer, selector):
    with pytest.raises(ValueError):
        VaultLister(indexer).list(selector)


def test_selector_of_wrong_type(indexer):
    with pytest.raises(TypeError):
        VaultLister(indexer).list(42)


def test_namespace_lister_list(indexer):
    lister = VaultLister(indexer).vaults("default")
    assert isinstance(lister, VaultNamespaceLister)
    assert names(lister.list()) == ["alpha", "beta"]
    assert names(lister.list("tier=prod")) == ["alpha"]
    assert names(VaultLister(indexer).vaults("other").list()) == ["gamma"]


def test_namespace_lister_all_namespaces(indexer):
    assert names(VaultLister(indexer).vaults("").list({"app": "db"})) == ["gamma"]


def test_namespace_lister_get(indexer):
    vault = VaultLister(indexer).vaults("other").get("gamma")
    assert vault.namespace == "other"
    assert vault.name == "gamma"


def test_namespace_lister_get_missing(indexer):
    with pytest.raises(NotFoundError) as info:
        VaultLister(indexer).vaults("other").get("alpha")
    assert info.value.name == "alpha"
    assert "not found" in str(info.value)
    assert isinstance(info.value, LookupError)