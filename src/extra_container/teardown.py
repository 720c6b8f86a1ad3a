"""Stop and remove installed containers, one name at a time.

Teardown is best effort: each step's failure becomes a :class:`TeardownWarning`
and the remaining steps and names still run. Re-running converges.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from pathlib import Path

from extra_container.errors import CommandError, TeardownWarning
from extra_container.logger import logger
from extra_container.paths import HostInstallPaths
from extra_container.process import run_command
from extra_container.runtime import ContainerRuntime
from extra_container.systemd import ServiceManager, is_not_loaded
from extra_container.types import DestroyReport, unit_name

# NixOS marks every var/empty immutable, including those of nested containers
_MARKER_NAME = "empty"
_MARKER_PARENT = "var"


def _unlink(path: Path) -> bool:
    if path.is_symlink() or path.exists():
        path.unlink()
        return True
    return False


def clear_immutable(state_dir: Path) -> list[Path]:
    """Drop the immutable attribute from empty-dir markers so the tree can be deleted."""
    cleared: list[Path] = []
    # os.walk does not descend into symlinked dirs, so links out of the tree are skipped
    for root, dirs, _files in os.walk(state_dir):
        dirs.sort()
        if os.path.basename(root) != _MARKER_PARENT or _MARKER_NAME not in dirs:
            continue
        path = Path(root) / _MARKER_NAME
        if not path.is_symlink():
            run_command(["chattr", "-i", str(path)])
            cleared.append(path)
    return cleared


class Teardown:
    def __init__(
        self,
        paths: HostInstallPaths,
        manager: ServiceManager,
        runtime: ContainerRuntime,
    ) -> None:
        self.paths = paths
        self.manager = manager
        self.runtime = runtime

    def _attempt(
        self,
        report: DestroyReport,
        name: str,
        step: str,
        fn: Callable[[], object],
    ) -> object | None:
        try:
            return fn()
        except CommandError as exc:
            if is_not_loaded(exc):
                logger.debug("Unit not loaded", name=name, step=step)
            else:
                logger.warning("Teardown step failed", name=name, step=step, err=str(exc))
            report.warnings.append(TeardownWarning(name, step, str(exc)))
        except OSError as exc:
            logger.warning("Teardown step failed", name=name, step=step, err=str(exc))
            report.warnings.append(TeardownWarning(name, step, str(exc)))
        return None

    def _remove_config(self, name: str) -> None:
        config = self.paths.config_link(name)
        if _unlink(config):
            # nixos-container won't destroy a container whose config is a
            # declarative store link, and won't stop one with no config at all
            config.write_text("")

    def destroy_one(self, name: str, report: DestroyReport) -> bool:
        """Tear down *name*; return True when its unit link was removed."""
        unit = unit_name(name)
        paths = self.paths
        published = [
            paths.service_link(name),
            paths.config_link(name),
            paths.wants_link(name),
            *paths.gcroot_links(name),
        ]
        had_state = any(p.is_symlink() or p.exists() for p in published)

        self._attempt(report, name, "stop", lambda: self.manager.stop([unit], no_block=True))
        self._attempt(report, name, "kill", lambda: self.manager.kill([unit]))
        self._attempt(report, name, "disable", lambda: _unlink(paths.wants_link(name)))
        removed_unit = bool(
            self._attempt(report, name, "remove unit", lambda: _unlink(paths.service_link(name)))
        )
        for root in paths.gcroot_links(name):
            self._attempt(report, name, "remove gc root", lambda root=root: _unlink(root))
        self._attempt(report, name, "remove config", lambda: self._remove_config(name))

        state_dir = paths.container_state_dir(name)
        if state_dir.is_dir():
            self._attempt(report, name, "clear immutable", lambda: clear_immutable(state_dir))
        self._attempt(report, name, "runtime destroy", lambda: self.runtime.destroy(name))

        if had_state:
            report.destroyed.append(name)
            logger.info("Destroyed container", name=name)
        else:
            logger.debug("Nothing installed to destroy", name=name)
        return removed_unit

    def destroy(self, names: Iterable[str]) -> DestroyReport:
        report = DestroyReport()
        need_reload = False
        for name in sorted(set(names)):
            need_reload |= self.destroy_one(name, report)
        if need_reload:
            if self._attempt(report, "*", "daemon-reload", self._reload) is not None:
                report.reloaded = True
        return report

    def _reload(self) -> bool:
        self.manager.daemon_reload()
        return True
