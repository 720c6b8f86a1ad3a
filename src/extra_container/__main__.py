"""Entry point for `python -m extra_container` / `extra-container`.

Subcommands:
    extra-container create OUT_DIR   Install the containers built into OUT_DIR
    extra-container destroy NAME...  Stop and remove containers
    extra-container list             List installed containers
    extra-container start|stop|restart NAME...
    extra-container show-ip NAME
    extra-container run NAME -- CMD...
    extra-container root-login NAME
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from extra_container.errors import ExtraContainerError
from extra_container.types import ReconcileReport


def _engine():
    from extra_container.config import get_settings
    from extra_container.engine import Engine
    from extra_container.logger import set_level

    set_level(get_settings().logging.level)
    return Engine()


def _print_report(report: ReconcileReport) -> None:
    groups = [
        ("Installed", report.installed),
        ("Unchanged", report.unchanged),
        ("Started", report.started),
        ("Updated", report.updated),
        ("Restarted", report.restarted),
        ("Changed but not restarted", report.ignored),
    ]
    for label, names in groups:
        if names:
            print(f"{label}: {', '.join(names)}")
    for failure in report.update_failures:
        print(f"Warning: {failure}", file=sys.stderr)


def _create(args: argparse.Namespace) -> int:
    from extra_container.lifecycle import LifecycleOptions
    from extra_container.session import enter, ephemeral

    engine = _engine()
    definitions = engine.locate(Path(args.out_dir))
    interactive = args.shell or args.run is not None
    start = args.start or interactive or args.ephemeral
    options = LifecycleOptions(start=start, on_change=args.on_change)

    if interactive and len(definitions) != 1:
        print("Error: --shell/--run need exactly one container", file=sys.stderr)
        return 1
    command = _command(args.run or [])

    if args.ephemeral:
        with ephemeral(engine, definitions, options=options) as report:
            _print_report(report)
            if interactive:
                return enter(engine, definitions[0].name, command)
        return 0

    report = engine.reconcile(definitions, options)
    _print_report(report)
    if interactive:
        return enter(engine, definitions[0].name, command)
    return 0


def _destroy(args: argparse.Namespace) -> int:
    engine = _engine()
    if args.all:
        report = engine.destroy_all()
    elif args.names:
        report = engine.destroy(args.names)
    else:
        print("Error: give container names or --all", file=sys.stderr)
        return 1
    for warning in report.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    if report.destroyed:
        print(f"Destroyed: {', '.join(report.destroyed)}")
    return 0


def _list(_args: argparse.Namespace) -> int:
    for name in _engine().list_installed():
        print(name)
    return 0


def _start(args: argparse.Namespace) -> int:
    _engine().start(args.names)
    return 0


def _stop(args: argparse.Namespace) -> int:
    _engine().stop(args.names)
    return 0


def _restart(args: argparse.Namespace) -> int:
    _engine().restart(args.names)
    return 0


def _show_ip(args: argparse.Namespace) -> int:
    print(_engine().show_ip(args.name))
    return 0


def _command(argv: list[str]) -> list[str]:
    return argv[1:] if argv[:1] == ["--"] else argv


def _run(args: argparse.Namespace) -> int:
    return _engine().runtime.attach(args.name, _command(args.command))


def _root_login(args: argparse.Namespace) -> int:
    return _engine().runtime.attach(args.name)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extra-container",
        description="Manage declarative NixOS containers without a system rebuild",
    )
    sub = parser.add_subparsers(dest="subcommand", required=True)

    p = sub.add_parser("create", help="Install or update the containers in a build output")
    p.add_argument("out_dir", help="Build output containing etc/systemd/system units")
    p.add_argument("-s", "--start", action="store_true", help="Start all containers")
    change = p.add_mutually_exclusive_group()
    change.add_argument(
        "-u",
        "--update-changed",
        dest="on_change",
        action="store_const",
        const="update",
        help="Switch running containers in place when only their system changed (default)",
    )
    change.add_argument(
        "-r",
        "--restart-changed",
        dest="on_change",
        action="store_const",
        const="restart",
        help="Restart every changed running container",
    )
    change.add_argument(
        "--no-change-action",
        dest="on_change",
        action="store_const",
        const="ignore",
        help="Leave changed running containers alone",
    )
    p.set_defaults(on_change="update", func=_create)
    p.add_argument("--shell", action="store_true", help="Open a root shell in the container")
    p.add_argument(
        "-E", "--ephemeral", action="store_true", help="Destroy the containers on exit"
    )
    # REMAINDER: --run ends option parsing, so it has to be the last option
    p.add_argument(
        "--run",
        nargs=argparse.REMAINDER,
        metavar="CMD",
        help="Run a command in the container (must come last: the rest of the line is CMD)",
    )

    p = sub.add_parser("destroy", help="Stop and remove containers")
    p.add_argument("names", nargs="*")
    p.add_argument("-a", "--all", action="store_true", help="Destroy all installed containers")
    p.set_defaults(func=_destroy)

    sub.add_parser("list", help="List installed containers").set_defaults(func=_list)

    for cmd, func in (("start", _start), ("stop", _stop), ("restart", _restart)):
        p = sub.add_parser(cmd, help=f"{cmd.capitalize()} installed containers")
        p.add_argument("names", nargs="+")
        p.set_defaults(func=func)

    p = sub.add_parser("show-ip", help="Print a container's IP address")
    p.add_argument("name")
    p.set_defaults(func=_show_ip)

    p = sub.add_parser("run", help="Run a command in a container")
    p.add_argument("name")
    p.add_argument("command", nargs=argparse.REMAINDER)
    p.set_defaults(func=_run)

    p = sub.add_parser("root-login", help="Open a root shell in a container")
    p.add_argument("name")
    p.set_defaults(func=_root_login)

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        code = args.func(args)
    except ExtraContainerError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
