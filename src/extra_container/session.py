"""Interactive sessions: wait for containers, enter one, clean up ephemerals."""

from __future__ import annotations

import contextlib
import dataclasses
import shutil
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

from extra_container.config import get_settings
from extra_container.engine import Engine
from extra_container.lifecycle import LifecycleOptions
from extra_container.logger import logger
from extra_container.systemd import ServiceManager
from extra_container.types import (
    ContainerDefinition,
    ReconcileReport,
    RunningState,
    WaitResult,
    unit_name,
)


def wait_until_active(
    names: Sequence[str],
    manager: ServiceManager,
    *,
    timeout: float | None = None,
    poll_interval: float | None = None,
    cancel: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> WaitResult:
    """Poll until every container is active, the timeout passes, or *cancel* is set.

    Ctrl-C during the wait counts as a cancel: the partial result is returned
    instead of propagating, so the caller can still enter a container.
    """
    s = get_settings().session
    timeout = s.start_timeout if timeout is None else timeout
    poll_interval = s.poll_interval if poll_interval is None else poll_interval

    pending = sorted(names)
    confirmed: list[str] = []
    deadline = clock() + timeout
    try:
        while pending:
            states = manager.active_states([unit_name(n) for n in pending])
            for name in list(pending):
                if states.get(unit_name(name)) is RunningState.ACTIVE:
                    pending.remove(name)
                    confirmed.append(name)
            if not pending:
                break
            if cancel is not None and cancel.is_set():
                return WaitResult(confirmed, pending, cancelled=True)
            if clock() >= deadline:
                logger.warning("Timed out waiting for containers", pending=pending)
                break
            sleep(poll_interval)
    except KeyboardInterrupt:
        logger.info("Wait interrupted", pending=pending)
        return WaitResult(confirmed, pending, cancelled=True)
    return WaitResult(confirmed, pending)


@contextlib.contextmanager
def ephemeral(
    engine: Engine,
    definitions: Sequence[ContainerDefinition],
    *,
    options: LifecycleOptions | None = None,
    workdir: Path | None = None,
) -> Iterator[ReconcileReport]:
    """Install and start *definitions*; destroy them however the block exits.

    *options* picks what happens to containers that are already running;
    start is always on.
    """
    if options is None:
        options = LifecycleOptions(on_change="restart")
    options = dataclasses.replace(options, start=True)
    names = sorted(d.name for d in definitions)
    try:
        yield engine.reconcile(definitions, options)
    finally:
        logger.info("Destroying ephemeral containers", names=names)
        report = engine.destroy(names)
        for warning in report.warnings:
            logger.debug("Ephemeral teardown warning", warning=str(warning))
        if workdir is not None:
            shutil.rmtree(workdir, ignore_errors=True)


def enter(
    engine: Engine,
    name: str,
    command: Sequence[str] = (),
    *,
    wait_for: Sequence[str] | None = None,
    cancel: threading.Event | None = None,
) -> int:
    """Wait for containers to come up, then attach to *name*.

    An interrupted wait still enters *name* right away; the remaining
    containers are left to finish starting on their own.
    """
    result = wait_until_active(wait_for or [name], engine.manager, cancel=cancel)
    if result.cancelled:
        logger.info("Entering container before all were active", pending=result.pending)
    elif not result.complete:
        logger.warning("Some containers are not active", pending=result.pending)
    return engine.runtime.attach(name, command)
