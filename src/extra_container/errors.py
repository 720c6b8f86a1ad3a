"""Error taxonomy.

Fatal errors derive from :class:`ExtraContainerError` and abort the run; the
CLI prints their message and exits non-zero. Recoverable conditions are
recorded in reports (:class:`TeardownWarning`, captured
:class:`UpdateFailedError`) and never change the exit code.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path


class ExtraContainerError(Exception):
    """Base class for errors surfaced to the operator."""


class CommandError(ExtraContainerError):
    """An external command (systemctl, machinectl, nixos-container) failed."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"'{' '.join(self.argv)}' exited with {returncode}{detail}")

    def mentions(self, *needles: str) -> bool:
        text = self.stderr.lower()
        return any(n.lower() in text for n in needles)


class MissingArtifactError(ExtraContainerError):
    """A container's config file is absent from the build output."""

    def __init__(self, name: str, path: Path) -> None:
        self.name = name
        self.path = path
        super().__init__(
            f"Container config file for '{name}' not found at {path}. "
            "The build output and this host disagree on the container config "
            "directory name (etc/nixos-containers vs. legacy etc/containers). "
            "Rebuild against the host's nixpkgs or set [paths].config_dir."
        )


class InstallationRejectedError(ExtraContainerError):
    """systemd resolved a container unit to the generic template."""

    def __init__(self, name: str, resolved: str) -> None:
        self.name = name
        self.resolved = resolved
        super().__init__(
            f"Installing container '{name}' failed: systemd ignored the installed unit "
            f"and resolved ExecStart to the generic container@.service ({resolved or 'empty'}).\n"
            "This host does not load units from the extra-container service directory. "
            "On NixOS, add the extra-container module to your configuration:\n"
            "  programs.extra-container.enable = true;\n"
            "then run 'nixos-rebuild switch' and retry."
        )


class RestartFailedError(ExtraContainerError):
    """The container process could not be terminated during a restart."""

    def __init__(self, name: str, attempts: int, last_error: Exception | None) -> None:
        self.name = name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to restart container '{name}': still running after "
            f"{attempts} terminate attempts (last error: {last_error})"
        )


class UpdateFailedError(ExtraContainerError):
    """switch-to-configuration failed inside a running container."""

    def __init__(self, name: str, cause: Exception) -> None:
        self.name = name
        self.cause = cause
        super().__init__(f"Updating container '{name}' failed: {cause}")


@dataclass(frozen=True)
class TeardownWarning:
    """A tolerated failure while destroying one container."""

    name: str
    step: str
    message: str

    def __str__(self) -> str:
        return f"{self.name}: {self.step}: {self.message}"
