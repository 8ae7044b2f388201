"""
Context and Console classes for jacocoverage.
"""
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

from core.archive import ArchiveConsole
from core.template import PropertyResolver


class Console(ArchiveConsole):
    """Simple console output handler with configurable log level.

    Levels: none < error < info < debug
    Default: 'none' (no output)
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(self, level: str = "none", dry_run: bool = False):
        self.level_name = level
        self.level = self.LEVELS.get(level, 0)
        self.dry_run = dry_run

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"[INFO] {message}")

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[ERROR] {message}", file=sys.stderr)

    def dry(self, message: str) -> None:
        if self.dry_run:
            print(f"[DRY] {message}")

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}")


@dataclass
class Context:
    properties: Dict[str, str]
    console: Console
    project_dir: Path
    resolver: PropertyResolver = field(init=False)

    def __post_init__(self) -> None:
        self.resolver = PropertyResolver(self.properties)

    def resolve(self, key: str) -> str:
        return self.resolver.resolve(key)
