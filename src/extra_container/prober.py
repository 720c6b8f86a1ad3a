"""Resolve what is currently published for a container."""

from __future__ import annotations

from extra_container.paths import HostInstallPaths
from extra_container.types import InstalledState


def probe(name: str, paths: HostInstallPaths) -> InstalledState | None:
    """Canonical link targets for *name*, or None when either link is dangling."""
    service = paths.service_link(name)
    config = paths.config_link(name)
    # exists() follows symlinks, so a dangling link counts as absent
    if not (service.exists() and config.exists()):
        return None
    try:
        return InstalledState(
            name=name,
            service_target=service.resolve(strict=True),
            config_target=config.resolve(strict=True),
        )
    except OSError:
        return None
