import pytest

from vaultcrd.metadata import EmbeddedObjectMetadata


def test_round_trip():
    data = {
        "name": "vault-raft",
        "labels": {"app": "vault"},
        "annotations": {"note": "kept"},
    }
    meta = EmbeddedObjectMetadata.from_dict(data)
    assert meta.name == "vault-raft"
    assert meta.labels == {"app": "vault"}
    assert meta.to_dict() == data


def test_empty_fields_are_omitted():
    assert EmbeddedObjectMetadata(name="x").to_dict() == {"name": "x"}
    assert EmbeddedObjectMetadata().to_dict() == {}


def test_missing_and_none_give_defaults():
    assert EmbeddedObjectMetadata.from_dict(None) == EmbeddedObjectMetadata()
    meta = EmbeddedObjectMetadata.from_dict({})
    assert meta.name == ""
    assert meta.labels == {}
    assert meta.annotations == {}


def test_to_dict_copies_maps():
    meta = EmbeddedObjectMetadata(labels={"a": "b"})
    out = meta.to_dict()
    out["labels"]["a"] = "changed"
    assert meta.labels == {"a": "b"}


def test_non_string_label_value_rejected():
    with pytest.raises(TypeError):
        EmbeddedObjectMetadata.from_dict({"labels": {"a": 1}})


def test_non_mapping_rejected():
    with pytest.raises(TypeError):
        EmbeddedObjectMetadata.from_dict(["name"])
    with pytest.raises(TypeError):
        EmbeddedObjectMetadata.from_dict({"annotations": "x"})


def test_non_string_name_rejected():
    with pytest.raises(TypeError):
        EmbeddedObjectMetadata.from_dict({"name": 5})