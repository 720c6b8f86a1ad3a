"""Host filesystem layout, resolved once at startup.

NixOS moved the declarative container config from ``/etc/containers`` to
``/etc/nixos-containers`` (and state from ``/var/lib/containers`` to
``/var/lib/nixos-containers``). Hosts that still use the old names are
"legacy"; the build output follows the same naming.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from extra_container.config import Settings, get_settings
from extra_container.logger import logger
from extra_container.types import unit_name

CURRENT_CONFIG_DIR = Path("/etc/nixos-containers")
LEGACY_CONFIG_DIR = Path("/etc/containers")
CURRENT_STATE_DIR = Path("/var/lib/nixos-containers")
LEGACY_STATE_DIR = Path("/var/lib/containers")
MUTABLE_SERVICE_DIR = Path("/etc/systemd-mutable/system")
SERVICE_DIR = Path("/etc/systemd/system")
GCROOTS_DIR = Path("/nix/var/nix/gcroots")

GCROOT_PREFIX = "extra-container-"
WANTS_DIR_NAME = "multi-user.target.wants"


@dataclass(frozen=True)
class HostInstallPaths:
    service_dir: Path
    config_dir: Path
    state_dir: Path
    gcroots_dir: Path
    is_nixos: bool = True

    @property
    def legacy(self) -> bool:
        return self.config_dir.name == LEGACY_CONFIG_DIR.name

    # --- published locations ---

    def service_link(self, name: str) -> Path:
        return self.service_dir / unit_name(name)

    def config_link(self, name: str) -> Path:
        return self.config_dir / f"{name}.conf"

    def wants_link(self, name: str) -> Path:
        return self.service_dir / WANTS_DIR_NAME / unit_name(name)

    def gcroot_links(self, name: str) -> tuple[Path, Path]:
        base = f"{GCROOT_PREFIX}{name}"
        return self.gcroots_dir / base, self.gcroots_dir / f"{base}.conf"

    def container_state_dir(self, name: str) -> Path:
        return self.state_dir / name

    # --- build output locations ---

    def build_service_dir(self, out_dir: Path) -> Path:
        return out_dir / "etc" / "systemd" / "system"

    def build_config_dir(self, out_dir: Path) -> Path:
        return out_dir / "etc" / self.config_dir.name


def detect_paths(settings: Settings | None = None) -> HostInstallPaths:
    """Resolve the host layout, honouring ``[paths]`` overrides."""
    s = settings or get_settings()
    p = s.paths

    legacy = LEGACY_CONFIG_DIR.is_dir() and not CURRENT_CONFIG_DIR.is_dir()
    service_dir = p.service_dir or (
        MUTABLE_SERVICE_DIR if MUTABLE_SERVICE_DIR.is_dir() else SERVICE_DIR
    )
    config_dir = p.config_dir or (LEGACY_CONFIG_DIR if legacy else CURRENT_CONFIG_DIR)
    state_dir = p.state_dir or (LEGACY_STATE_DIR if legacy else CURRENT_STATE_DIR)

    paths = HostInstallPaths(
        service_dir=service_dir,
        config_dir=config_dir,
        state_dir=state_dir,
        gcroots_dir=p.gcroots_dir or GCROOTS_DIR,
        is_nixos=p.nixos_marker.exists(),
    )
    logger.debug(
        "Resolved host paths",
        service_dir=str(paths.service_dir),
        config_dir=str(paths.config_dir),
        legacy=paths.legacy,
    )
    return paths
