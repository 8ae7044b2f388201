"""Command line interface for the jacocoverage utilities."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Dict, Iterable, List
import sys

from core.archive import ArchiveArtifact, ArchiveManager
from core.config_loader import load_property_store
from core.directories import list_directories

from .context import Console, Context
from .reports import PROJECT_DIR_KEY, default_properties, package_report, report_locations


def _parse_definitions(values: Iterable[str]) -> Dict[str, str]:
    definitions: Dict[str, str] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Invalid property definition '{raw}', expected KEY=VALUE")
        definitions[key] = value
    return definitions


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="jacocoverage", description="Coverage workflow utilities")
    parser.add_argument(
        "--config",
        "-c",
        action="append",
        default=[],
        type=Path,
        help="Configuration file or directory (repeatable, later ones win)",
    )
    parser.add_argument("--project", "-p", type=Path, help="Project directory (default: current directory)")
    parser.add_argument(
        "-D",
        dest="define",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a property",
    )
    parser.add_argument(
        "--log",
        "-l",
        choices=["none", "error", "info", "debug"],
        default="error",
        help="Set log level (default: error)",
    )
    parser.add_argument("--dry-run", "-n", action="store_true", help="Show what would be done without doing it")

    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve_parser = subparsers.add_parser("resolve", help="Print resolved property values")
    resolve_parser.add_argument("keys", nargs="*", help="Keys to resolve (default: all)")

    dirs_parser = subparsers.add_parser("dirs", help="List every directory below ROOT")
    dirs_parser.add_argument("root", type=Path, help="Root directory")

    zip_parser = subparsers.add_parser("zip", help="Package a single file into an archive")
    zip_parser.add_argument("source", type=Path, help="File to package")
    zip_parser.add_argument("destination", type=Path, help="Archive to create")
    zip_parser.add_argument("--entry", help="Entry name inside the archive (default: source file name)")
    zip_parser.add_argument("--format", choices=["zip", "zst"], help="Archive format (default: from suffix)")
    zip_parser.add_argument("--async", dest="run_async", action="store_true", help="Archive in the background")

    reports_parser = subparsers.add_parser("reports", help="Show coverage report locations")
    reports_parser.add_argument("--archive", action="store_true", help="Zip the binary report next to itself")
    reports_parser.add_argument("--async", dest="run_async", action="store_true", help="Archive in the background")

    return parser.parse_args(list(argv))


def _build_context(args: Namespace, console: Console) -> Context:
    project_dir = Path(args.project).expanduser().resolve() if args.project else Path.cwd()
    overrides = {PROJECT_DIR_KEY: str(project_dir)}
    overrides.update(_parse_definitions(args.define))

    properties = default_properties()
    properties.update(load_property_store(*args.config, overrides=overrides))
    console.debug(f"Loaded {len(properties)} properties for {project_dir}")
    return Context(properties=properties, console=console, project_dir=project_dir)


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(argv or sys.argv[1:])
    console = Console(level=args.log, dry_run=args.dry_run)

    try:
        ctx = _build_context(args, console)
    except (OSError, TypeError, ValueError) as exc:
        console.error(f"Failed to load configuration: {exc}")
        return 1

    if args.command == "resolve":
        return _handle_resolve(args, ctx)
    if args.command == "dirs":
        return _handle_dirs(args, ctx)
    if args.command == "zip":
        return _handle_zip(args, ctx)
    if args.command == "reports":
        return _handle_reports(args, ctx)
    raise ValueError(f"Unknown command: {args.command}")


def _handle_resolve(args: Namespace, ctx: Context) -> int:
    keys: List[str] = list(args.keys) or sorted(ctx.properties)
    for key in keys:
        print(f"{key}={ctx.resolve(key)}")
    return 0


def _handle_dirs(args: Namespace, ctx: Context) -> int:
    directories = list_directories(args.root)
    if not directories:
        ctx.console.info(f"No directories found below {args.root}")
    for directory in directories:
        print(directory)
    return 0


def _handle_zip(args: Namespace, ctx: Context) -> int:
    manager = ArchiveManager(ctx.console)
    try:
        target = manager.create_archive(
            artifact=ArchiveArtifact(args.source, args.entry),
            target_path=args.destination,
            format_hint=args.format,
            run_async=args.run_async,
        )
    except (OSError, ValueError) as exc:
        ctx.console.error(f"Failed to archive {args.source}: {exc}")
        return 1

    if args.run_async:
        ctx.console.info(f"Archiving {args.source} to {target} in the background")
    return 0


def _handle_reports(args: Namespace, ctx: Context) -> int:
    locations = report_locations(ctx)
    print(f"binary: {locations.binary}")
    print(f"xml: {locations.xml}")

    if not args.archive:
        return 0

    try:
        target = package_report(ctx, locations.binary, run_async=args.run_async)
    except OSError as exc:
        ctx.console.error(f"Failed to package {locations.binary}: {exc}")
        return 1
    print(f"archive: {target}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
