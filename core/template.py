"""Placeholder expansion for flat property stores."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping
import re


PLACEHOLDER_PATTERN = re.compile(r"\$\{([^}]+)\}")
"""Matches ``${key}`` references; the key is anything up to the next ``}``."""

MAX_EXPANSION_PASSES = 80
"""Upper bound on expansion passes, which caps cyclic references."""

PropertyStore = Mapping[str, str]


def check_regex(text: str, pattern: re.Pattern[str] | str) -> bool:
    """Return ``True`` when *pattern* matches anywhere in *text*."""

    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
    return compiled.search(text) is not None


def groups_from_regex(
    text: str,
    pattern: re.Pattern[str] | str,
    expected_count: int = 0,
) -> List[str]:
    """Return every capturing group of every match of *pattern* in *text*.

    Groups are listed in match order, then group order. *expected_count* is a
    sizing hint kept for callers that know roughly how many captures to expect;
    it never limits or pads the result.
    """

    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
    groups: List[str] = []
    for match in compiled.finditer(text):
        groups.extend(match.group(index) for index in range(1, compiled.groups + 1))
    return groups


def _lookup(store: PropertyStore, key: str) -> str:
    value = store.get(key)
    if value is None:
        return ""
    return str(value)


def _expand(store: PropertyStore, value: str) -> str:
    passes = 0
    while passes < MAX_EXPANSION_PASSES and check_regex(value, PLACEHOLDER_PATTERN):
        passes += 1
        refs = groups_from_regex(value, PLACEHOLDER_PATTERN, 3)
        for ref in refs:
            replacement = _lookup(store, ref)
            # Each reference replaces whichever placeholder currently comes first.
            value = PLACEHOLDER_PATTERN.sub(lambda _match: replacement, value, count=1)
    return value


def resolve_property(store: PropertyStore, key: str) -> str:
    """Return the value of *key* with ``${ref}`` placeholders expanded.

    Missing keys, including referenced ones, resolve to an empty string.
    Expansion stops after :data:`MAX_EXPANSION_PASSES` passes and the partially
    expanded value is returned as-is, so cyclic references terminate.
    """

    return _expand(store, _lookup(store, key))


@dataclass(frozen=True)
class PropertyResolver:
    """Resolves keys and free text against a read-only property store."""

    store: PropertyStore

    def resolve(self, key: str) -> str:
        return resolve_property(self.store, key)

    def resolve_text(self, text: str) -> str:
        """Expand placeholders inside *text*, which need not be a stored value."""
        return _expand(self.store, text)

    def resolve_all(self) -> Dict[str, str]:
        return {key: self.resolve(key) for key in self.store}


def extract_placeholders(value: Any) -> set[str]:
    """Collect the keys referenced by placeholders within *value*."""

    placeholders: set[str] = set()

    def _collect(obj: Any) -> None:
        if isinstance(obj, str):
            placeholders.update(groups_from_regex(obj, PLACEHOLDER_PATTERN))
            return
        if isinstance(obj, Mapping):
            for item in obj.values():
                _collect(item)
            return
        if isinstance(obj, (list, tuple)):
            for item in obj:
                _collect(item)

    _collect(value)
    return placeholders


__all__ = [
    "MAX_EXPANSION_PASSES",
    "PLACEHOLDER_PATTERN",
    "PropertyResolver",
    "PropertyStore",
    "check_regex",
    "extract_placeholders",
    "groups_from_regex",
    "resolve_property",
]
