"""Access to resources bundled inside Python packages."""
from __future__ import annotations

from importlib import resources

DEFAULT_RESOURCE_PACKAGE = "jacocoverage"


def load_resource(resource: str, *, package: str = DEFAULT_RESOURCE_PACKAGE) -> bytes:
    """Read the bundled *resource* of *package* fully into memory.

    *resource* is a ``/``-separated path relative to the package directory; a
    leading ``/`` is ignored. The resource handle is closed on every exit path.

    Raises
    ------
    FileNotFoundError
        If the resource does not exist.
    OSError
        If the resource cannot be read completely.
    """

    parts = [part for part in resource.split("/") if part]
    if not parts:
        raise FileNotFoundError(f"Empty resource path for package '{package}'")

    target = resources.files(package)
    for part in parts:
        target = target.joinpath(part)

    if not target.is_file():
        raise FileNotFoundError(f"Resource '{resource}' not found in package '{package}'")

    with target.open("rb") as handle:
        return handle.read()


__all__ = ["DEFAULT_RESOURCE_PACKAGE", "load_resource"]
