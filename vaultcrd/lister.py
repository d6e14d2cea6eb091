"""Read-only listing and lookup of Vault resources held in a local index."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Mapping
from typing import Union

from vaultcrd.vault import Vault

__all__ = ["Indexer", "NotFoundError", "VaultLister", "VaultNamespaceLister"]

_GROUP = "vault.banzaicloud.com"

Selector = Union[None, str, Mapping[str, str]]
_Matcher = Callable[[Mapping[str, str]], bool]

_TERM = re.compile(
    r"""
    \s*(?:
        !\s*(?P<absent>[^\s!=(),]+)
      | (?P<key>[^\s!=(),]+)\s*(?:
            (?P<op>==|=|!=)\s*(?P<value>[^\s!=(),]*)
          | \s(?P<setop>in|notin)\s*\((?P<values>[^()]*)\)
        )?
    )\s*$
    """,
    re.VERBOSE,
)


class NotFoundError(LookupError):
    """Raised when a named Vault resource does not exist."""

    def __init__(self, name: str, resource: str = "vault") -> None:
        self.name = name
        self.resource = resource
        super().__init__(f'{resource}.{_GROUP} "{name}" not found')


def _split_terms(text: str) -> Iterator[str]:
    depth = 0
    start = 0
    for pos, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise ValueError(f"unbalanced parentheses in selector: {text!r}")
        elif char == "," and depth == 0:
            yield text[start:pos]
            start = pos + 1
    if depth:
        raise ValueError(f"unbalanced parentheses in selector: {text!r}")
    yield text[start:]


def _compile_term(term: str) -> _Matcher:
    match = _TERM.match(term)
    if match is None or not term.strip():
        raise ValueError(f"invalid label selector term: {term!r}")
    if match["absent"] is not None:
        absent = match["absent"]
        return lambda labels: absent not in labels
    key = match["key"]
    if match["op"] is not None:
        value = match["value"]
        if match["op"] == "!=":
            return lambda labels: labels.get(key) != value
        return lambda labels: key in labels and labels[key] == value
    if match["setop"] is not None:
        values = frozenset(v.strip() for v in match["values"].split(",") if v.strip())
        if not values:
            raise ValueError(f"empty value set in selector term: {term!r}")
        if match["setop"] == "in":
            return lambda labels: key in labels and labels[key] in values
        return lambda labels: labels.get(key) not in values
    return lambda labels: key in labels


def _compile_selector(selector: Selector) -> _Matcher:
    """Turn a label selector into a predicate over label mappings.

    ``None`` and the empty string select everything; a mapping requires each
    label to equal the given value; a string uses the Kubernetes selector
    syntax (``a=b``, ``a!=b``, ``a``, ``!a``, ``a in (x,y)``, ``a notin (x)``).
    """
    if selector is None:
        return lambda labels: True
    if isinstance(selector, Mapping):
        wanted = dict(selector)
        return lambda labels: all(
            key in labels and labels[key] == value for key, value in wanted.items()
        )
    if not isinstance(selector, str):
        raise TypeError(f"selector must be a string or a mapping, got {type(selector).__name__}")
    if not selector.strip():
        return lambda labels: True
    matchers = [_compile_term(term) for term in _split_terms(selector)]
    return lambda labels: all(m(labels) for m in matchers)


def _key_of(vault: Vault) -> str:
    if vault.namespace:
        return f"{vault.namespace}/{vault.name}"
    return vault.name


class Indexer:
    """A local store of Vault resources keyed by ``namespace/name``."""

    def __init__(self, vaults: tuple[Vault, ...] | list[Vault] = ()) -> None:
        self._items: dict[str, Vault] = {}
        for vault in vaults:
            self.add(vault)

    def add(self, vault: Vault) -> None:
        """Store a Vault, replacing one with the same key."""
        self._items[_key_of(vault)] = vault

    def update(self, vault: Vault) -> None:
        """Store the new state of a Vault."""
        self._items[_key_of(vault)] = vault

    def delete(self, vault: Vault) -> None:
        """Remove a Vault; removing one that is not stored does nothing."""
        self._items.pop(_key_of(vault), None)

    def get_by_key(self, key: str) -> Vault | None:
        """Return the Vault stored under ``key``, or ``None``."""
        return self._items.get(key)

    def list(self) -> list[Vault]:
        """Return every stored Vault, ordered by key."""
        return [self._items[key] for key in sorted(self._items)]

    def __len__(self) -> int:
        return len(self._items)


class VaultLister:
    """Lists Vaults from an index; returned objects must be treated as read-only."""

    def __init__(self, indexer: Indexer) -> None:
        self._indexer = indexer

    def list(self, selector: Selector = None) -> list[Vault]:
        """Return all Vaults whose labels match the selector."""
        matches = _compile_selector(selector)
        return [v for v in self._indexer.list() if matches(v.labels)]

    def vaults(self, namespace: str) -> "VaultNamespaceLister":
        """Return a lister limited to one namespace."""
        return VaultNamespaceLister(self._indexer, namespace)


class VaultNamespaceLister:
    """Lists and gets Vaults of one namespace; the empty namespace means all."""

    def __init__(self, indexer: Indexer, namespace: str) -> None:
        self._indexer = indexer
        self.namespace = namespace

    def list(self, selector: Selector = None) -> list[Vault]:
        """Return the namespace's Vaults whose labels match the selector."""
        matches = _compile_selector(selector)
        return [
            v
            for v in self._indexer.list()
            if (not self.namespace or v.namespace == self.namespace) and matches(v.labels)
        ]

    def get(self, name: str) -> Vault:
        """Return the named Vault; raise ``NotFoundError`` if it is not indexed."""
        vault = self._indexer.get_by_key(f"{self.namespace}/{name}")
        if vault is None:
            raise NotFoundError(name)
        return vault