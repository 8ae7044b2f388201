"""Shared helpers for loading configuration files into flat property stores."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping

import json
import tomllib

import yaml


ConfigLoader = Callable[[Any], Mapping[str, Any]]


def _load_yaml(stream: Any) -> Mapping[str, Any]:
    try:
        return yaml.safe_load(stream)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in '{getattr(stream, 'name', stream)}': {exc}") from exc


FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": _load_yaml,
    ".yml": _load_yaml,
}
"""Mapping of file suffixes to loader callables."""

_BINARY_SUFFIXES = {".toml"}


def register_loader(suffix: str, loader: ConfigLoader, *, binary: bool = False) -> None:
    """Register ``loader`` for files ending with ``suffix``.

    Loaders receive an open text stream, or a binary one when ``binary`` is set.
    """

    normalized = suffix.lower()
    if not normalized.startswith("."):
        raise ValueError("Suffix must start with '.'")
    FILE_LOADERS[normalized] = loader
    if binary:
        _BINARY_SUFFIXES.add(normalized)
    else:
        _BINARY_SUFFIXES.discard(normalized)


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS)) or "<none>"
        raise ValueError(
            f"Unsupported configuration file extension: {suffix}. Supported: {supported}"
        )

    mode = "rb" if suffix in _BINARY_SUFFIXES else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    with path.open(mode, **kwargs) as handle:
        data = loader(handle)

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")

    return data


def collect_config_files(directory: Path) -> List[Path]:
    """Return the supported configuration files of ``directory`` sorted by name."""

    return sorted(
        path
        for path in directory.iterdir()
        if path.is_file() and path.suffix.lower() in FILE_LOADERS
    )


def merge_mappings(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep merge two mapping objects."""

    result: Dict[str, Any] = dict(base)
    for key, value in overlay.items():
        existing = result.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = merge_mappings(existing, value)
        else:
            result[key] = value
    return result


def _to_property_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_to_property_text(item) for item in value)
    return str(value)


def flatten_mapping(mapping: Mapping[str, Any], *, prefix: str = "") -> Dict[str, str]:
    """Flatten nested tables into dotted keys with string values.

    ``{"build": {"dir": "out", "classes": {"dir": "${build.dir}/classes"}}}``
    becomes ``{"build.dir": "out", "build.classes.dir": "${build.dir}/classes"}``.
    """

    flat: Dict[str, str] = {}
    for raw_key, value in mapping.items():
        key = f"{prefix}{raw_key}"
        if isinstance(value, Mapping):
            flat.update(flatten_mapping(value, prefix=f"{key}."))
        else:
            flat[key] = _to_property_text(value)
    return flat


def load_property_store(
    *sources: Path | str,
    overrides: Mapping[str, str] | None = None,
) -> Dict[str, str]:
    """Merge ``sources`` in order, then ``overrides``, into one flat store.

    A directory source contributes every supported file it contains, in name
    order. Later sources win over earlier ones.
    """

    merged: Dict[str, Any] = {}
    for raw in sources:
        path = Path(raw).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Configuration path '{path}' does not exist")
        files: Iterable[Path] = collect_config_files(path) if path.is_dir() else [path]
        for config_file in files:
            merged = merge_mappings(merged, load_config_file(config_file))

    store = flatten_mapping(merged)
    if overrides:
        store.update({str(key): str(value) for key, value in overrides.items()})
    return store


__all__ = [
    "ConfigLoader",
    "FILE_LOADERS",
    "collect_config_files",
    "flatten_mapping",
    "load_config_file",
    "load_property_store",
    "merge_mappings",
    "register_loader",
]
