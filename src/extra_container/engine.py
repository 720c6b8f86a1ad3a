"""Entry points: reconcile a build against the host, destroy, list."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

from extra_container.diff import diff_all
from extra_container.installer import publish_all
from extra_container.lifecycle import LifecycleDriver, LifecycleOptions, plan
from extra_container.locator import locate
from extra_container.logger import logger
from extra_container.paths import GCROOT_PREFIX, HostInstallPaths, detect_paths
from extra_container.retry import RetryPolicy
from extra_container.runtime import ContainerRuntime, NixosContainerRuntime
from extra_container.systemd import ServiceManager, SystemdManager
from extra_container.teardown import Teardown
from extra_container.types import (
    ContainerDefinition,
    DestroyReport,
    ReconcileReport,
    RunningState,
    unit_name,
)


class Engine:
    def __init__(
        self,
        paths: HostInstallPaths | None = None,
        manager: ServiceManager | None = None,
        runtime: ContainerRuntime | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.paths = paths or detect_paths()
        self.manager = manager or SystemdManager()
        self.runtime = runtime or NixosContainerRuntime()
        self.driver = LifecycleDriver(self.manager, self.runtime, retry_policy)

    def locate(self, out_dir: Path) -> list[ContainerDefinition]:
        return locate(out_dir, self.paths)

    def reconcile_build(
        self, out_dir: Path, options: LifecycleOptions | None = None
    ) -> ReconcileReport:
        definitions = self.locate(out_dir)
        if not definitions:
            logger.warning("No containers defined", out_dir=str(out_dir))
        return self.reconcile(definitions, options)

    def reconcile(
        self,
        definitions: Sequence[ContainerDefinition],
        options: LifecycleOptions | None = None,
    ) -> ReconcileReport:
        """Install changed definitions, then start/update/restart as *options* ask.

        Publishing errors abort before any lifecycle action; lifecycle
        decisions only ever see fully published artifacts.
        """
        options = options or LifecycleOptions()
        by_name = {d.name: d for d in definitions}
        report = ReconcileReport()

        diff = diff_all(by_name.values(), self.paths)
        report.unchanged = list(diff.unchanged)
        if diff.unchanged:
            logger.info("Containers unchanged", names=diff.unchanged)

        report.installed = publish_all(
            [by_name[n] for n in diff.changed], self.paths, self.manager
        )

        names = sorted(by_name)
        units = [unit_name(n) for n in names]
        states = self.manager.active_states(units)
        running = {n: states.get(unit_name(n), RunningState.INACTIVE) for n in names}

        lifecycle_plan = plan(diff, running, options)
        self.driver.execute(lifecycle_plan, by_name, report)
        return report

    def destroy(self, names: Iterable[str]) -> DestroyReport:
        return Teardown(self.paths, self.manager, self.runtime).destroy(names)

    def destroy_all(self) -> DestroyReport:
        return self.destroy(self.list_installed())

    def list_installed(self) -> list[str]:
        """Names of containers with an extra-container GC root."""
        roots = self.paths.gcroots_dir
        if not roots.is_dir():
            return []
        names = [
            entry.name[len(GCROOT_PREFIX) :]
            for entry in roots.iterdir()
            if entry.name.startswith(GCROOT_PREFIX) and not entry.name.endswith(".conf")
        ]
        return sorted(names)

    def start(self, names: Iterable[str]) -> None:
        self.driver.start(sorted(names))

    def stop(self, names: Iterable[str]) -> None:
        self.manager.stop([unit_name(n) for n in sorted(names)], no_block=False)

    def restart(self, names: Iterable[str]) -> list[str]:
        restarted: list[str] = []
        for name in sorted(names):
            self.driver.restart(name)
            restarted.append(name)
        return restarted

    def show_ip(self, name: str) -> str:
        return self.runtime.show_ip(name)
