"""Classify desired definitions against what is installed.

Classification compares canonical store paths only; it never looks inside a
container's running state. A config file whose only difference is the
``SYSTEM_PATH=`` line means the container's NixOS system changed but its
nspawn parameters did not, so the container can be switched in place.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from extra_container.paths import HostInstallPaths
from extra_container.prober import probe
from extra_container.types import (
    SYSTEM_PATH_KEY,
    ChangeClass,
    ContainerDefinition,
    InstalledState,
)

_SYSTEM_PATH_PREFIX = f"{SYSTEM_PATH_KEY}=".encode()


def _strip_system_path(data: bytes) -> bytes:
    lines = data.splitlines(keepends=True)
    return b"".join(line for line in lines if not line.startswith(_SYSTEM_PATH_PREFIX))


def configs_differ_only_in_system_path(a: Path, b: Path) -> bool:
    try:
        return _strip_system_path(a.read_bytes()) == _strip_system_path(b.read_bytes())
    except OSError:
        return False


def _canonical(path: Path) -> Path:
    return path.resolve()


def classify(definition: ContainerDefinition, installed: InstalledState | None) -> ChangeClass:
    if installed is None:
        return ChangeClass.ABSENT

    same_service = installed.service_target == _canonical(definition.service_path)
    same_config = installed.config_target == _canonical(definition.config_path)

    if same_service and same_config:
        return ChangeClass.UNCHANGED
    if same_service and configs_differ_only_in_system_path(
        installed.config_target, definition.config_path
    ):
        return ChangeClass.SYSTEM_ONLY_CHANGED
    return ChangeClass.FULLY_CHANGED


@dataclass
class DiffResult:
    classes: dict[str, ChangeClass] = field(default_factory=dict)
    changed: list[str] = field(default_factory=list)
    system_only_changed: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)


def diff_all(definitions: Iterable[ContainerDefinition], paths: HostInstallPaths) -> DiffResult:
    """Classify every definition, in name order."""
    result = DiffResult()
    for d in sorted(definitions, key=lambda d: d.name):
        change = classify(d, probe(d.name, paths))
        result.classes[d.name] = change
        if not change.is_changed:
            result.unchanged.append(d.name)
            continue
        result.changed.append(d.name)
        if change is ChangeClass.SYSTEM_ONLY_CHANGED:
            result.system_only_changed.append(d.name)
    return result
