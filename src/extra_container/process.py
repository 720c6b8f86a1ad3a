"""Blocking subprocess helper shared by the systemd and runtime adapters."""

from __future__ import annotations

import subprocess
from collections.abc import Sequence

from extra_container.errors import CommandError
from extra_container.logger import logger


def run_command(
    argv: Sequence[str],
    *,
    check: bool = True,
    capture: bool = True,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run *argv* to completion.

    With ``check`` a non-zero exit raises :class:`CommandError` carrying
    stderr, so callers can tell "not loaded" or "no such machine" apart from
    real failures. A missing binary is reported the same way (exit 127).
    """
    logger.debug("Running command", argv=list(argv))
    try:
        result = subprocess.run(
            list(argv),
            capture_output=capture,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise CommandError(argv, 127, str(exc)) from exc
    if check and result.returncode != 0:
        raise CommandError(argv, result.returncode, result.stderr or "")
    return result
