import pytest

from vaultcrd.pod_spec import EmbeddedPodSpec

FULL = {
    "volumes": [{"name": "data", "emptyDir": {}}],
    "initContainers": [{"name": "init", "image": "busybox"}],
    "containers": [{"name": "vault", "image": "vault:1.6.2"}],
    "ephemeralContainers": [{"name": "debug", "image": "busybox"}],
    "restartPolicy": "Always",
    "terminationGracePeriodSeconds": 30,
    "activeDeadlineSeconds": 600,
    "dnsPolicy": "ClusterFirst",
    "nodeSelector": {"disk": "ssd"},
    "serviceAccountName": "vault",
    "serviceAccount": "vault-old",
    "automountServiceAccountToken": True,
    "nodeName": "node-a",
    "hostNetwork": True,
    "hostPID": True,
    "hostIPC": True,
    "shareProcessNamespace": True,
    "securityContext": {"runAsUser": 100},
    "imagePullSecrets": [{"name": "registry"}],
    "hostname": "vault-0",
    "subdomain": "vault",
    "affinity": {"podAntiAffinity": {}},
    "schedulerName": "default-scheduler",
    "tolerations": [{"key": "dedicated", "operator": "Exists"}],
    "hostAliases": [{"ip": "127.0.0.1", "hostnames": ["vault.local"]}],
    "priorityClassName": "high",
    "priority": 1000,
    "dnsConfig": {"nameservers": ["1.1.1.1"]},
    "readinessGates": [{"conditionType": "Ready"}],
    "runtimeClassName": "runc",
    "enableServiceLinks": True,
    "preemptionPolicy": "Never",
    "overhead": {"cpu": "250m"},
    "topologySpreadConstraints": [{"topologyKey": "zone", "maxSkew": 1}],
    "setHostnameAsFQDN": True,
}


def test_full_round_trip():
    spec = EmbeddedPodSpec.from_dict(FULL)
    assert spec.to_dict() == FULL
    assert EmbeddedPodSpec.from_dict(spec.to_dict()) == spec


def test_json_names_map_to_attributes():
    spec = EmbeddedPodSpec.from_dict(FULL)
    assert spec.deprecated_service_account == "vault-old"
    assert spec.service_account_name == "vault"
    assert spec.host_pid is True
    assert spec.set_hostname_as_fqdn is True
    assert spec.termination_grace_period_seconds == 30
    assert spec.containers == [{"name": "vault", "image": "vault:1.6.2"}]


def test_empty_spec_has_no_fields():
    assert EmbeddedPodSpec().to_dict() == {}
    assert EmbeddedPodSpec.from_dict(None) == EmbeddedPodSpec()
    assert EmbeddedPodSpec.from_dict({}) == EmbeddedPodSpec()


def test_containers_may_be_missing():
    spec = EmbeddedPodSpec.from_dict({"nodeSelector": {"disk": "ssd"}})
    assert spec.containers == []
    assert spec.to_dict() == {"nodeSelector": {"disk": "ssd"}}


def test_optional_false_and_zero_are_kept():
    data = {
        "automountServiceAccountToken": False,
        "enableServiceLinks": False,
        "terminationGracePeriodSeconds": 0,
        "priority": 0,
    }
    assert EmbeddedPodSpec.from_dict(data).to_dict() == data


def test_plain_false_and_empty_are_dropped():
    data = {"hostNetwork": False, "hostname": "", "volumes": [], "overhead": {}}
    assert EmbeddedPodSpec.from_dict(data).to_dict() == {}


def test_unknown_keys_are_ignored():
    spec = EmbeddedPodSpec.from_dict({"unknownField": 1, "hostname": "vault-0"})
    assert spec.to_dict() == {"hostname": "vault-0"}


def test_from_dict_copies_input():
    data = {"containers": [{"name": "vault", "env": []}]}
    spec = EmbeddedPodSpec.from_dict(data)
    data["containers"][0]["env"].append({"name": "X"})
    assert spec.containers == [{"name": "vault", "env": []}]


def test_to_dict_returns_a_copy():
    spec = EmbeddedPodSpec.from_dict({"affinity": {"nodeAffinity": {}}})
    out = spec.to_dict()
    out["affinity"]["extra"] = True
    assert spec.affinity == {"nodeAffinity": {}}


@pytest.mark.parametrize(
    "data",
    [
        "not a mapping",
        {"containers": {"name": "vault"}},
        {"containers": ["vault"]},
        {"hostNetwork": "yes"},
        {"priority": "high"},
        {"priority": True},
        {"nodeSelector": {"disk": 1}},
        {"affinity": []},
        {"runtimeClassName": 5},
    ],
)
def test_wrong_types_raise(data):
    with pytest.raises(TypeError):
        EmbeddedPodSpec.from_dict(data)


@pytest.mark.parametrize(
    "data",
    [
        {"priority": 1 << 31},
        {"priority": -(1 << 31) - 1},
        {"activeDeadlineSeconds": 1 << 63},
    ],
)
def test_out_of_range_integers_raise(data):
    with pytest.raises(ValueError):
        EmbeddedPodSpec.from_dict(data)


def test_integer_bounds_are_accepted():
    data = {"priority": (1 << 31) - 1, "activeDeadlineSeconds": (1 << 63) - 1}
    assert EmbeddedPodSpec.from_dict(data).to_dict() == data