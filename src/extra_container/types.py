"""Type definitions shared across the engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path

from extra_container.errors import TeardownWarning, UpdateFailedError

SYSTEM_PATH_KEY = "SYSTEM_PATH"
AUTO_START_KEY = "AUTO_START"


def unit_name(name: str) -> str:
    """systemd unit backing container *name*."""
    return f"container@{name}.service"


def parse_container_conf(text: str) -> dict[str, str]:
    """Parse a nixos-container ``<name>.conf`` (shell-style KEY=value lines)."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        values[key.strip()] = value
    return values


class ChangeClass(enum.Enum):
    ABSENT = "absent"
    UNCHANGED = "unchanged"
    SYSTEM_ONLY_CHANGED = "system-only-changed"
    FULLY_CHANGED = "fully-changed"

    @property
    def is_changed(self) -> bool:
        return self is not ChangeClass.UNCHANGED


class RunningState(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class ContainerDefinition:
    """A container as emitted by the build: a unit file and a config file."""

    name: str
    service_path: Path
    config_path: Path

    @property
    def unit(self) -> str:
        return unit_name(self.name)

    def config_values(self) -> dict[str, str]:
        return parse_container_conf(self.config_path.read_text())

    @property
    def auto_start(self) -> bool:
        return self.config_values().get(AUTO_START_KEY) == "1"

    @property
    def system_path(self) -> str | None:
        return self.config_values().get(SYSTEM_PATH_KEY) or None


@dataclass(frozen=True)
class InstalledState:
    """Canonical targets of a container's published links."""

    name: str
    service_target: Path
    config_target: Path


@dataclass
class ReconcileReport:
    """Outcome of one reconcile run, in name order within each group."""

    installed: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    started: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    restarted: list[str] = field(default_factory=list)
    ignored: list[str] = field(default_factory=list)
    update_failures: list[UpdateFailedError] = field(default_factory=list)


@dataclass
class DestroyReport:
    destroyed: list[str] = field(default_factory=list)
    warnings: list[TeardownWarning] = field(default_factory=list)
    reloaded: bool = False


@dataclass
class WaitResult:
    """Containers confirmed active before the wait ended."""

    confirmed: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def complete(self) -> bool:
        return not self.pending
