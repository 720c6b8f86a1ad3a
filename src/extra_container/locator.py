"""Find container definitions in a build output directory."""

from __future__ import annotations

import re
from pathlib import Path

from extra_container.logger import logger
from extra_container.paths import HostInstallPaths
from extra_container.types import ContainerDefinition

_UNIT_RE = re.compile(r"^container@(?P<name>[^/]+)\.service$")


def locate(out_dir: Path, paths: HostInstallPaths) -> list[ContainerDefinition]:
    """Return one definition per ``container@<name>.service`` in *out_dir*, by name."""
    unit_dir = paths.build_service_dir(out_dir)
    if not unit_dir.is_dir():
        logger.warning("No container units in build output", out_dir=str(out_dir))
        return []

    config_dir = paths.build_config_dir(out_dir)
    definitions: list[ContainerDefinition] = []
    for entry in unit_dir.iterdir():
        match = _UNIT_RE.match(entry.name)
        if match is None:
            continue
        name = match.group("name")
        definitions.append(
            ContainerDefinition(
                name=name,
                service_path=entry,
                config_path=config_dir / f"{name}.conf",
            )
        )
    definitions.sort(key=lambda d: d.name)
    return definitions
