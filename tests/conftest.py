"""Shared test fixtures: a fake host layout, a fake build, fake collaborators."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pytest

from extra_container.errors import CommandError
from extra_container.paths import HostInstallPaths
from extra_container.types import RunningState

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures, importable by test files)
# ---------------------------------------------------------------------------


def make_settings(**overrides):
    """Create a Settings object from pure defaults (no config.toml, no env).

    Usage::

        s = make_settings(restart=RestartConfig(max_attempts=3))
    """
    from extra_container.config import (
        InstallConfig,
        LoggingConfig,
        PathsConfig,
        RestartConfig,
        SessionConfig,
        Settings,
    )

    defaults = {
        "paths": PathsConfig(),
        "restart": RestartConfig(),
        "session": SessionConfig(),
        "install": InstallConfig(),
        "logging": LoggingConfig(),
    }
    defaults.update(overrides)
    return Settings.model_construct(**defaults)


def conf_text(*, system: str = "/nix/store/sys-1", auto_start: bool = False, **extra) -> str:
    lines = [
        "PRIVATE_NETWORK=1",
        "HOST_ADDRESS=10.250.0.1",
        "LOCAL_ADDRESS=10.250.0.2",
    ]
    lines += [f"{k.upper()}={v}" for k, v in extra.items()]
    if auto_start:
        lines.append("AUTO_START=1")
    lines.append(f"SYSTEM_PATH={system}")
    return "\n".join(lines) + "\n"


def unit_text(start_script: str = "/nix/store/start-1/bin/container-start") -> str:
    return f"[Unit]\nDescription=Container\n\n[Service]\nExecStart={start_script}\n"


class FakeBuild:
    """Writes store-like artifacts and build output dirs under a tmp dir."""

    def __init__(self, root: Path, config_dir_name: str = "nixos-containers") -> None:
        self.root = root
        self.store = root / "store"
        self.store.mkdir(parents=True, exist_ok=True)
        self.config_dir_name = config_dir_name
        self._count = 0

    def _store_file(self, suffix: str, content: str) -> Path:
        # Identical content maps to the same store path, like a real store
        for existing in self.store.glob(f"*-{suffix}"):
            if existing.read_text() == content:
                return existing
        self._count += 1
        path = self.store / f"{self._count:04d}-{suffix}"
        path.write_text(content)
        return path

    def output(self, containers: dict[str, tuple[str, str | None]]) -> Path:
        """Create a build output; values are (unit text, conf text or None)."""
        self._count += 1
        out = self.root / f"out-{self._count}"
        units = out / "etc" / "systemd" / "system"
        confs = out / "etc" / self.config_dir_name
        units.mkdir(parents=True)
        confs.mkdir(parents=True)
        for name, (unit, conf) in containers.items():
            (units / f"container@{name}.service").symlink_to(
                self._store_file(f"container_{name}.service", unit)
            )
            if conf is not None:
                (confs / f"{name}.conf").symlink_to(self._store_file(f"{name}.conf", conf))
        return out


class FakeManager:
    """Records systemctl calls; unit states are set by the test."""

    def __init__(self, active: Sequence[str] = ()) -> None:
        self.active = set(active)
        self.calls: list[tuple] = []
        self.not_loaded: set[str] = set()
        self.exec_starts: dict[str, str] = {}

    def _check_loaded(self, op: str, units: Sequence[str]) -> None:
        missing = [u for u in units if u in self.not_loaded]
        if missing:
            unit = missing[0]
            raise CommandError(
                ["systemctl", op, *units], 5, f"Failed to {op} {unit}: Unit {unit} not loaded."
            )

    def active_states(self, units):
        self.calls.append(("is-active", tuple(units)))
        return {
            u: RunningState.ACTIVE if u in self.active else RunningState.INACTIVE for u in units
        }

    def start(self, units):
        self.calls.append(("start", tuple(units)))
        self.active.update(units)

    def stop(self, units, *, no_block=True):
        self.calls.append(("stop", tuple(units), no_block))
        self._check_loaded("stop", units)
        self.active.difference_update(units)

    def kill(self, units):
        self.calls.append(("kill", tuple(units)))
        self._check_loaded("kill", units)

    def daemon_reload(self):
        self.calls.append(("daemon-reload",))

    def exec_start(self, unit):
        self.calls.append(("show", unit))
        return self.exec_starts.get(unit, "")

    def ops(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class FakeRuntime:
    """Scripted runtime: terminate() pops responses (None = ok, str = stderr)."""

    def __init__(self, terminate_script: Sequence[str | None] = ()) -> None:
        self.terminate_script = list(terminate_script)
        self.terminate_calls: list[str] = []
        self.run_calls: list[tuple[str, list[str]]] = []
        self.destroyed: list[str] = []
        self.attached: list[tuple[str, list[str]]] = []
        self.run_error: str | None = None
        self.destroy_error: str | None = None

    def terminate(self, name):
        self.terminate_calls.append(name)
        response = self.terminate_script.pop(0) if self.terminate_script else None
        if response is not None:
            raise CommandError(["machinectl", "terminate", name], 1, response)

    def run(self, name, command):
        self.run_calls.append((name, list(command)))
        if self.run_error:
            raise CommandError(["nixos-container", "run", name], 1, self.run_error)
        return ""

    def show_ip(self, name):
        return "10.250.0.2"

    def destroy(self, name):
        self.destroyed.append(name)
        if self.destroy_error:
            raise CommandError(["nixos-container", "destroy", name], 1, self.destroy_error)

    def attach(self, name, command=()):
        self.attached.append((name, list(command)))
        return 0


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Each test starts from default Settings, no config.toml and no env."""
    monkeypatch.setattr("extra_container.config._settings", make_settings())


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def host(tmp_path: Path) -> HostInstallPaths:
    root = tmp_path / "host"
    return HostInstallPaths(
        service_dir=root / "etc" / "systemd-mutable" / "system",
        config_dir=root / "etc" / "nixos-containers",
        state_dir=root / "var" / "lib" / "nixos-containers",
        gcroots_dir=root / "nix" / "var" / "nix" / "gcroots",
        is_nixos=False,
    )


@pytest.fixture
def build(tmp_path: Path) -> FakeBuild:
    return FakeBuild(tmp_path / "build")
