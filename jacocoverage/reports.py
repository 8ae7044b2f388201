"""Locations of the coverage reports produced for a project."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict
import tomllib

from core.archive import ArchiveArtifact, ArchiveManager
from core.config_loader import flatten_mapping
from core.resources import load_resource

from .context import Context

BINARY_REPORT_NAME = "jacoco.exec"
XML_REPORT_NAME = "jacocoverage.report.xml"

BINARY_REPORT_KEY = "jacoco.exec"
XML_REPORT_KEY = "jacocoverage.report.xml"
PROJECT_DIR_KEY = "project.dir"

DEFAULTS_RESOURCE = "resources/defaults.toml"


@dataclass(frozen=True)
class ReportLocations:
    binary: Path
    xml: Path


def binary_report_file(project_dir: Path | str) -> Path:
    """Return the JaCoCo binary report file of the project at *project_dir*."""
    return Path(project_dir) / BINARY_REPORT_NAME


def xml_report_file(project_dir: Path | str) -> Path:
    """Return the JaCoCo XML report file of the project at *project_dir*."""
    return Path(project_dir) / XML_REPORT_NAME


def default_properties() -> Dict[str, str]:
    """Return the bundled default property store."""

    payload = load_resource(DEFAULTS_RESOURCE)
    return flatten_mapping(tomllib.loads(payload.decode("utf-8")))


def report_locations(ctx: Context) -> ReportLocations:
    """Resolve the report paths configured for *ctx*.

    Keys left empty after resolution fall back to the fixed report names in
    the project directory.
    """

    binary = ctx.resolve(BINARY_REPORT_KEY)
    xml = ctx.resolve(XML_REPORT_KEY)
    return ReportLocations(
        binary=Path(binary) if binary else binary_report_file(ctx.project_dir),
        xml=Path(xml) if xml else xml_report_file(ctx.project_dir),
    )


def package_report(ctx: Context, report: Path, *, run_async: bool = False) -> Path:
    """Zip *report* next to itself as ``<report>.zip`` and return that path."""

    target = report.with_name(f"{report.name}.zip")
    manager = ArchiveManager(ctx.console)
    ctx.console.debug(f"Packaging {report} into {target}")
    return manager.create_archive(
        artifact=ArchiveArtifact(report, report.name),
        target_path=target,
        format_hint="zip",
        run_async=run_async,
    )


__all__ = [
    "BINARY_REPORT_KEY",
    "PROJECT_DIR_KEY",
    "ReportLocations",
    "XML_REPORT_KEY",
    "binary_report_file",
    "default_properties",
    "package_report",
    "report_locations",
    "xml_report_file",
]
