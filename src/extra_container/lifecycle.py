"""Decide and perform start / update / restart for reconciled containers.

``systemctl restart container@<name>`` can leave the container unit in an
inconsistent state when the nspawn machine outlives the stop. A restart is
therefore an explicit stop, a bounded ``machinectl terminate`` loop until the
machine is gone, and a start.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal

from extra_container.config import get_settings
from extra_container.diff import DiffResult
from extra_container.errors import CommandError, RestartFailedError, UpdateFailedError
from extra_container.logger import logger
from extra_container.retry import Outcome, RetryExhaustedError, RetryPolicy
from extra_container.runtime import ContainerRuntime, is_no_such_machine
from extra_container.systemd import ServiceManager
from extra_container.types import (
    ChangeClass,
    ContainerDefinition,
    ReconcileReport,
    RunningState,
    unit_name,
)

ChangePolicy = Literal["update", "restart", "ignore"]


@dataclass(frozen=True)
class LifecycleOptions:
    start: bool = False
    on_change: ChangePolicy = "update"


@dataclass
class LifecyclePlan:
    to_start: list[str] = field(default_factory=list)
    to_update: list[str] = field(default_factory=list)
    to_restart: list[str] = field(default_factory=list)
    ignored: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.to_start or self.to_update or self.to_restart)


def plan(
    diff: DiffResult,
    running: Mapping[str, RunningState],
    options: LifecycleOptions,
) -> LifecyclePlan:
    result = LifecyclePlan()
    for name in sorted(diff.classes):
        change = diff.classes[name]
        active = running.get(name) is RunningState.ACTIVE

        if not active:
            if options.start:
                result.to_start.append(name)
            continue
        if not change.is_changed:
            continue
        if options.on_change == "ignore":
            result.ignored.append(name)
        elif options.on_change == "update" and change is ChangeClass.SYSTEM_ONLY_CHANGED:
            result.to_update.append(name)
        else:
            result.to_restart.append(name)
    return result


def _classify_terminate(exc: Exception) -> Outcome:
    if isinstance(exc, CommandError) and is_no_such_machine(exc):
        return Outcome.SUCCESS
    if isinstance(exc, CommandError):
        return Outcome.RETRY
    return Outcome.FATAL


class LifecycleDriver:
    def __init__(
        self,
        manager: ServiceManager,
        runtime: ContainerRuntime,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.manager = manager
        self.runtime = runtime
        if retry_policy is None:
            r = get_settings().restart
            retry_policy = RetryPolicy(max_attempts=r.max_attempts, delay=r.retry_delay)
        self.retry_policy = retry_policy

    def start(self, names: list[str]) -> None:
        self.manager.start([unit_name(n) for n in names])

    def update(self, definition: ContainerDefinition) -> None:
        """Switch a running container to its new system in place."""
        system_path = definition.system_path
        try:
            if system_path is None:
                raise ValueError(f"no SYSTEM_PATH in {definition.config_path}")
            self.runtime.run(
                definition.name, [f"{system_path}/bin/switch-to-configuration", "test"]
            )
        except (CommandError, OSError, ValueError) as exc:
            raise UpdateFailedError(definition.name, exc) from exc

    def restart(self, name: str) -> None:
        unit = unit_name(name)
        self.manager.stop([unit], no_block=True)
        try:
            attempts = self.retry_policy.call(
                lambda: self.runtime.terminate(name),
                _classify_terminate,
                label=f"terminate {name}",
            )
        except RetryExhaustedError as exc:
            raise RestartFailedError(name, exc.attempts, exc.last_error) from exc
        logger.debug("Container terminated", name=name, attempts=attempts)
        self.manager.start([unit])

    def execute(
        self,
        lifecycle_plan: LifecyclePlan,
        definitions: Mapping[str, ContainerDefinition],
        report: ReconcileReport,
    ) -> None:
        """Run a plan; update failures are recorded, restart failures re-raised last."""
        if lifecycle_plan.to_start:
            logger.info("Starting containers", names=lifecycle_plan.to_start)
        if lifecycle_plan.to_restart:
            logger.info("Restarting containers", names=lifecycle_plan.to_restart)
        if lifecycle_plan.ignored:
            logger.info(
                "Changed containers left running (restart them to apply)",
                names=lifecycle_plan.ignored,
            )
        report.ignored.extend(lifecycle_plan.ignored)

        for name in lifecycle_plan.to_update:
            logger.info("Updating container", name=name)
            try:
                self.update(definitions[name])
            except UpdateFailedError as exc:
                logger.warning("Update failed, container keeps old config", name=name, err=str(exc))
                report.update_failures.append(exc)
                continue
            report.updated.append(name)

        restart_failures: list[RestartFailedError | CommandError] = []
        for name in lifecycle_plan.to_restart:
            try:
                self.restart(name)
            except (RestartFailedError, CommandError) as exc:
                logger.error("Restart failed", name=name, err=str(exc))
                restart_failures.append(exc)
                continue
            report.restarted.append(name)

        if lifecycle_plan.to_start:
            self.start(lifecycle_plan.to_start)
            report.started.extend(lifecycle_plan.to_start)

        if restart_failures:
            raise restart_failures[0]
