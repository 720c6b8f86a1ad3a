"""Container runtime adapter: ``nixos-container`` plus ``machinectl``."""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from extra_container.errors import CommandError
from extra_container.process import run_command


@runtime_checkable
class ContainerRuntime(Protocol):
    """Runtime contract consumed by the engine."""

    def terminate(self, name: str) -> None: ...
    def run(self, name: str, command: Sequence[str]) -> str: ...
    def show_ip(self, name: str) -> str: ...
    def destroy(self, name: str) -> None: ...
    def attach(self, name: str, command: Sequence[str] = ()) -> int: ...


def is_no_such_machine(exc: CommandError) -> bool:
    """machinectl's answer when the container process is already gone."""
    return exc.mentions("no machine", "no such machine")


class NixosContainerRuntime:
    def __init__(
        self,
        nixos_container: str = "nixos-container",
        machinectl: str = "machinectl",
    ) -> None:
        self.nixos_container = nixos_container
        self.machinectl = machinectl

    def terminate(self, name: str) -> None:
        run_command([self.machinectl, "terminate", name])

    def run(self, name: str, command: Sequence[str]) -> str:
        return run_command([self.nixos_container, "run", name, "--", *command]).stdout

    def show_ip(self, name: str) -> str:
        return run_command([self.nixos_container, "show-ip", name]).stdout.strip()

    def destroy(self, name: str) -> None:
        run_command([self.nixos_container, "destroy", name])

    def attach(self, name: str, command: Sequence[str] = ()) -> int:
        """Run *command* (or a root login shell) on the operator's terminal."""
        if command:
            argv = [self.nixos_container, "run", name, "--", *command]
        else:
            argv = [self.nixos_container, "root-login", name]
        return subprocess.run(argv).returncode
