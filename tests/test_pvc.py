import pytest

from vaultcrd.metadata import EmbeddedObjectMetadata
from vaultcrd.pvc import EmbeddedPersistentVolumeClaim

SAMPLE = {
    "apiVersion": "v1",
    "kind": "PersistentVolumeClaim",
    "metadata": {
        "name": "vault-raft",
        "labels": {"app": "vault"},
        "annotations": {"note": "raft data"},
    },
    "spec": {
        "accessModes": ["ReadWriteOnce"],
        "resources": {"requests": {"storage": "1Gi"}},
    },
}


def test_from_dict_reads_all_fields():
    pvc = EmbeddedPersistentVolumeClaim.from_dict(SAMPLE)
    assert pvc.api_version == "v1"
    assert pvc.kind == "PersistentVolumeClaim"
    assert pvc.metadata == EmbeddedObjectMetadata(
        name="vault-raft", labels={"app": "vault"}, annotations={"note": "raft data"}
    )
    assert pvc.spec == SAMPLE["spec"]


def test_round_trip():
    pvc = EmbeddedPersistentVolumeClaim.from_dict(SAMPLE)
    assert pvc.to_dict() == SAMPLE
    assert EmbeddedPersistentVolumeClaim.from_dict(pvc.to_dict()) == pvc


def test_none_and_empty_give_defaults():
    assert EmbeddedPersistentVolumeClaim.from_dict(None) == EmbeddedPersistentVolumeClaim()
    assert EmbeddedPersistentVolumeClaim.from_dict({}) == EmbeddedPersistentVolumeClaim()


def test_empty_to_dict_keeps_metadata_and_spec():
    assert EmbeddedPersistentVolumeClaim().to_dict() == {"metadata": {}, "spec": {}}


def test_to_persistent_volume_claim_drops_type_information():
    pvc = EmbeddedPersistentVolumeClaim.from_dict(SAMPLE)
    claim = pvc.to_persistent_volume_claim()
    assert "apiVersion" not in claim
    assert "kind" not in claim
    assert claim["metadata"] == SAMPLE["metadata"]
    assert claim["spec"] == SAMPLE["spec"]


def test_to_persistent_volume_claim_is_a_copy():
    pvc = EmbeddedPersistentVolumeClaim.from_dict(SAMPLE)
    claim = pvc.to_persistent_volume_claim()
    claim["spec"]["accessModes"].append("ReadOnlyMany")
    claim["metadata"]["labels"]["extra"] = "x"
    assert pvc.spec["accessModes"] == ["ReadWriteOnce"]
    assert pvc.metadata.labels == {"app": "vault"}


def test_from_dict_copies_input():
    data = {"spec": {"accessModes": ["ReadWriteOnce"]}}
    pvc = EmbeddedPersistentVolumeClaim.from_dict(data)
    data["spec"]["accessModes"].append("ReadOnlyMany")
    assert pvc.spec == {"accessModes": ["ReadWriteOnce"]}


@pytest.mark.parametrize(
    "data",
    [
        ["not", "a", "mapping"],
        {"spec": "fast"},
        {"kind": 3},
        {"apiVersion": ["v1"]},
        {"metadata": {"labels": {"a": 1}}},
    ],
)
def test_invalid_input_raises(data):
    with pytest.raises(TypeError):
        EmbeddedPersistentVolumeClaim.from_dict(data)