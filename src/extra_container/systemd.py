"""systemd service manager adapter (``systemctl``)."""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from extra_container.errors import CommandError
from extra_container.process import run_command
from extra_container.types import RunningState


@runtime_checkable
class ServiceManager(Protocol):
    """Service manager contract consumed by the engine."""

    def active_states(self, units: Sequence[str]) -> dict[str, RunningState]: ...
    def start(self, units: Sequence[str]) -> None: ...
    def stop(self, units: Sequence[str], *, no_block: bool = True) -> None: ...
    def kill(self, units: Sequence[str]) -> None: ...
    def daemon_reload(self) -> None: ...
    def exec_start(self, unit: str) -> str: ...


def is_not_loaded(exc: CommandError) -> bool:
    """systemctl's complaint about a unit it has never heard of."""
    return exc.mentions("not loaded", "not found", "does not exist")


class SystemdManager:
    def __init__(self, systemctl: str = "systemctl") -> None:
        self.systemctl = systemctl

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        return run_command([self.systemctl, *args], check=check)

    def active_states(self, units: Sequence[str]) -> dict[str, RunningState]:
        if not units:
            return {}
        # is-active exits non-zero when any unit is inactive; stdout has one line per unit
        result = self._run("is-active", *units, check=False)
        lines = result.stdout.splitlines()
        states: dict[str, RunningState] = {}
        for i, unit in enumerate(units):
            status = lines[i].strip() if i < len(lines) else ""
            states[unit] = RunningState.ACTIVE if status == "active" else RunningState.INACTIVE
        return states

    def start(self, units: Sequence[str]) -> None:
        if units:
            self._run("start", *units)

    def stop(self, units: Sequence[str], *, no_block: bool = True) -> None:
        if units:
            flags = ["--no-block"] if no_block else []
            self._run("stop", *flags, *units)

    def kill(self, units: Sequence[str]) -> None:
        if units:
            self._run("kill", *units)

    def daemon_reload(self) -> None:
        self._run("daemon-reload")

    def exec_start(self, unit: str) -> str:
        return self._run("show", "--property=ExecStart", "--value", unit).stdout.strip()
