"""Publish container definitions into the host's mutable unit/config dirs.

Every link is written to a temporary name and renamed over the destination,
so each step is atomic and safe to repeat after a crash. GC roots point at
the published links (not at the store paths) so that replacing a link also
moves the root.
"""

from __future__ import annotations

import os
import re
from collections.abc import Sequence
from pathlib import Path

from extra_container.config import get_settings
from extra_container.errors import InstallationRejectedError, MissingArtifactError
from extra_container.logger import logger
from extra_container.paths import HostInstallPaths
from extra_container.systemd import ServiceManager
from extra_container.types import ContainerDefinition, unit_name

_EXEC_START_RE = re.compile(r"^ExecStart=[@!+:-]*(?P<cmd>\S+)", re.MULTILINE)


def replace_symlink(link: Path, target: Path) -> None:
    """Point *link* at *target*, replacing whatever is there atomically."""
    link.parent.mkdir(parents=True, exist_ok=True)
    tmp = link.with_name(f".{link.name}.tmp-{os.getpid()}")
    if tmp.is_symlink() or tmp.exists():
        tmp.unlink()
    tmp.symlink_to(target)
    os.replace(tmp, link)


def publish(definition: ContainerDefinition, paths: HostInstallPaths) -> None:
    if not definition.config_path.exists():
        raise MissingArtifactError(definition.name, definition.config_path)

    name = definition.name
    auto_start = definition.auto_start
    service_link = paths.service_link(name)
    config_link = paths.config_link(name)

    replace_symlink(service_link, definition.service_path.resolve())
    replace_symlink(config_link, definition.config_path.resolve())

    root_service, root_config = paths.gcroot_links(name)
    replace_symlink(root_service, service_link)
    replace_symlink(root_config, config_link)

    wants = paths.wants_link(name)
    if auto_start:
        replace_symlink(wants, service_link)
    elif wants.is_symlink():
        wants.unlink()

    logger.info("Installed container", name=name, auto_start=auto_start)


def publish_all(
    definitions: Sequence[ContainerDefinition],
    paths: HostInstallPaths,
    manager: ServiceManager,
) -> list[str]:
    """Publish a batch, then reload systemd once and verify one unit."""
    ordered = sorted(definitions, key=lambda d: d.name)
    # Check every artifact before touching the host so a bad build installs nothing
    for d in ordered:
        if not d.config_path.exists():
            raise MissingArtifactError(d.name, d.config_path)

    for d in ordered:
        publish(d, paths)

    names = [d.name for d in ordered]
    if names:
        manager.daemon_reload()
        verify_install(ordered[0], paths, manager)
    return names


def _should_verify(paths: HostInstallPaths) -> bool:
    mode = get_settings().install.verify
    if mode == "auto":
        return paths.is_nixos
    return mode == "always"


def _expected_exec_start(definition: ContainerDefinition) -> str | None:
    match = _EXEC_START_RE.search(definition.service_path.read_text())
    return match.group("cmd") if match else None


def verify_install(
    definition: ContainerDefinition,
    paths: HostInstallPaths,
    manager: ServiceManager,
) -> None:
    """Fail loudly when systemd loaded the generic template instead of our unit.

    On NixOS, ``container@.service`` is part of the system closure. If the
    host does not read units from the extra-container service dir, systemd
    keeps resolving ``container@<name>`` to that template and the container
    would start with the wrong configuration.
    """
    if not _should_verify(paths):
        logger.debug("Skipping install verification", name=definition.name)
        return

    expected = _expected_exec_start(definition)
    if expected is None:
        logger.warning("Unit has no ExecStart, skipping verification", name=definition.name)
        return

    resolved = manager.exec_start(unit_name(definition.name))
    if expected not in resolved:
        raise InstallationRejectedError(definition.name, resolved)
