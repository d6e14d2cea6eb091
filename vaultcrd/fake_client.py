"""An in-memory Vault client for tests of code that manages Vault resources."""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from typing import Any

from vaultcrd.lister import NotFoundError, Selector, _compile_selector
from vaultcrd.vault import Vault, VaultList

__all__ = ["AlreadyExistsError", "FakeVaultV1alpha1", "FakeVaults"]

_RESOURCE = "vaults"


class AlreadyExistsError(Exception):
    """Raised when creating a Vault whose namespace and name are taken."""

    def __init__(self, namespace: str, name: str) -> None:
        self.namespace = namespace
        self.name = name
        super().__init__(f'vaults.vault.banzaicloud.com "{name}" already exists')


def _merge_patch(target: Any, patch: Any) -> Any:
    if not isinstance(patch, Mapping):
        return copy.deepcopy(patch)
    result = dict(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = _merge_patch(result.get(key), value)
    return result


class FakeVaultV1alpha1:
    """An in-memory store of Vaults that records every call made to it.

    ``actions`` holds ``(verb, resource, namespace, name)`` tuples in call order.
    """

    def __init__(self, *objects: Vault) -> None:
        self._objects: dict[tuple[str, str], Vault] = {}
        self.actions: list[tuple[str, str, str, str]] = []
        for vault in objects:
            key = (vault.namespace, vault.name)
            if key in self._objects:
                raise AlreadyExistsError(*key)
            self._objects[key] = copy.deepcopy(vault)

    def vaults(self, namespace: str = "") -> "FakeVaults":
        """Return a client for the Vaults of one namespace."""
        return FakeVaults(self, namespace)


class FakeVaults:
    """Vault operations on one namespace of a fake client.

    Objects go in and come out as copies, as they would across the wire.
    """

    def __init__(self, fake: FakeVaultV1alpha1, namespace: str) -> None:
        self.fake = fake
        self.namespace = namespace

    def _record(self, verb: str, name: str = "") -> None:
        self.fake.actions.append((verb, _RESOURCE, self.namespace, name))

    def _stored(self, name: str) -> Vault:
        try:
            return self.fake._objects[(self.namespace, name)]
        except KeyError:
            raise NotFoundError(name, _RESOURCE) from None

    def _in_scope(self, vault: Vault) -> bool:
        return not self.namespace or vault.namespace == self.namespace

    def _admit(self, vault: Vault) -> Vault:
        stored = copy.deepcopy(vault)
        if not stored.metadata.namespace:
            stored.metadata.namespace = self.namespace
        elif stored.metadata.namespace != self.namespace:
            raise ValueError(
                f"request namespace {self.namespace!r} does not match "
                f"object namespace {stored.metadata.namespace!r}"
            )
        if not stored.name:
            raise ValueError("a Vault must have a name")
        return stored

    def get(self, name: str) -> Vault:
        """Return the named Vault; raise ``NotFoundError`` if it does not exist."""
        self._record("get", name)
        return copy.deepcopy(self._stored(name))

    def list(self, label_selector: Selector = None) -> VaultList:
        """Return the Vaults of the namespace whose labels match the selector."""
        self._record("list")
        matches = _compile_selector(label_selector)
        items = [
            copy.deepcopy(self.fake._objects[key])
            for key in sorted(self.fake._objects)
            if self._in_scope(self.fake._objects[key])
            and matches(self.fake._objects[key].labels)
        ]
        return VaultList(items=items)

    def create(self, vault: Vault) -> Vault:
        """Store a new Vault; raise ``AlreadyExistsError`` if the name is taken."""
        self._record("create", vault.name)
        stored = self._admit(vault)
        key = (stored.namespace, stored.name)
        if key in self.fake._objects:
            raise AlreadyExistsError(*key)
        self.fake._objects[key] = stored
        return copy.deepcopy(stored)

    def update(self, vault: Vault) -> Vault:
        """Replace an existing Vault; raise ``NotFoundError`` if there is none."""
        self._record("update", vault.name)
        stored = self._admit(vault)
        self._stored(stored.name)
        self.fake._objects[(stored.namespace, stored.name)] = stored
        return copy.deepcopy(stored)

    def delete(self, name: str) -> None:
        """Remove the named Vault; raise ``NotFoundError`` if there is none."""
        self._record("delete", name)
        self._stored(name)
        del self.fake._objects[(self.namespace, name)]

    def delete_collection(self, label_selector: Selector = None) -> int:
        """Remove the namespace's Vaults matching the selector; return how many."""
        self._record("delete-collection")
        matches = _compile_selector(label_selector)
        doomed = [
            key
            for key, vault in self.fake._objects.items()
            if self._in_scope(vault) and matches(vault.labels)
        ]
        for key in doomed:
            del self.fake._objects[key]
        return len(doomed)

    def patch(self, name: str, data: bytes | str | Mapping[str, Any]) -> Vault:
        """Apply a JSON merge patch to the named Vault and return the result."""
        self._record("patch", name)
        current = self._stored(name)
        patch = json.loads(data) if isinstance(data, (bytes, str)) else data
        if not isinstance(patch, Mapping):
            raise ValueError("a merge patch must be a JSON object")
        patched = Vault.from_dict(_merge_patch(current.to_dict(), patch))
        if (patched.namespace, patched.name) != (current.namespace, current.name):
            raise ValueError("a patch may not change the name or namespace")
        self.fake._objects[(current.namespace, current.name)] = patched
        return copy.deepcopy(patched)