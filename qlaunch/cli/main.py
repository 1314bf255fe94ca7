"""Top-level modal CLI wiring, argv normalization, and logging setup."""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from ..compiler import compile_invocation
from ..profiles import load_profile, load_profiles
from ..settings import load_settings
from ..usb import find_storage_path, resolve_usb
from ._common import _BaseCommand, _load_settings, log
from .host import DoctorCLI
from .menu import MenuCLI


_LOG_LEVELS = ('WARNING', 'INFO', 'DEBUG')
_LOG_FORMAT = (
    '<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | '
    '<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>'
)


class ShowCLI(_BaseCommand):
    """Print the launch command a saved profile compiles to."""

    profile = scfg.Value('', help='Name of the saved profile to compile.')
    sudo = scfg.Value(
        True, isflag=True, help='Prefix the command with sudo when not root.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        settings = _load_settings(args)
        name = str(args.profile or '').strip()
        if not name:
            raise RuntimeError('--profile is required')
        cfg = load_profile(name, settings.resolved_profiles_file())
        usb = resolve_usb(
            cfg.usb_selections,
            lookup=lambda ref: find_storage_path(ref, settings.usb_by_id_dir),
        )
        inv = compile_invocation(
            cfg,
            usb,
            ovmf_path=settings.ovmf_path,
            default_binary=settings.default_binary,
        )
        for warning in inv.warnings:
            print(f'⚠  {warning}', file=sys.stderr)
        print(inv.shell(sudo=bool(args.sudo) and settings.use_sudo))
        return 0


class ProfilesCLI(_BaseCommand):
    """List saved profiles."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        path = _load_settings(args).resolved_profiles_file()
        profiles = load_profiles(path)
        print('Saved profiles')
        if not profiles:
            print('  (none)')
        for name, body in sorted(profiles.items()):
            ndisks = len(body.get('disks', None) or []) or (1 if body.get('disk') else 0)
            print(
                f'  - {name} | disks={ndisks} '
                f'| ram={body.get("ram") or "2G"} '
                f'| cores={body.get("cores") or 2} '
                f'| firmware={body.get("firmware") or "BIOS"}'
            )
        print('')
        print(f'Profiles file: {path}')
        return 0


class QLaunchModalCLI(scfg.ModalCLI):
    """Interactive QEMU VM launcher."""

    menu = MenuCLI
    show = ShowCLI
    profiles = ProfilesCLI
    doctor = DoctorCLI


def main(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    argv = _normalize_argv(argv)
    verbosity = 1
    try:
        settings_value = _option_value(argv, '--settings')
        verbosity = load_settings(
            Path(settings_value) if settings_value else None
        ).verbosity
    except Exception:
        verbosity = 1

    _setup_logging(_count_verbose(argv), verbosity)

    try:
        rc = QLaunchModalCLI.main(argv=argv, _noexit=True)
    except KeyboardInterrupt:
        print('', file=sys.stderr)
        sys.exit(130)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.error('Unhandled qemu-launch error: {}', ex)
        sys.exit(2)

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)


def _setup_logging(args_verbose: int, cfg_verbosity: int) -> None:
    """Route loguru to stderr; -v flags win over the settings verbosity."""
    logger.remove()
    verbosity = args_verbose or cfg_verbosity
    level = _LOG_LEVELS[min(max(verbosity, 0), len(_LOG_LEVELS) - 1)]
    logger.add(
        sys.stderr,
        level=level,
        colorize=sys.stderr.isatty() and os.getenv('NO_COLOR') is None,
        format=_LOG_FORMAT,
    )
    log.debug('Logging at {} (verbosity={})', level, verbosity)


def _normalize_argv(argv: list[str]) -> list[str]:
    """Default to the interactive menu and accept a few aliases."""
    if not argv or argv[0].startswith('-') and argv[0] not in ('-h', '--help'):
        return ['menu', *argv]
    if argv[0] == 'ls':
        return ['profiles', *argv[1:]]
    if argv[0] == 'run':
        return ['menu', *argv[1:]]
    return argv


def _option_value(argv: list[str], flag: str) -> str | None:
    for i, item in enumerate(argv):
        if item == flag and i + 1 < len(argv):
            return argv[i + 1]
        if item.startswith(flag + '='):
            return item.split('=', 1)[1]
    return None


def _count_verbose(argv: list[str]) -> int:
    """Count -v, -vv and --verbose occurrences before scriptconfig parses."""
    return sum(
        1 if item == '--verbose' else len(item) - 1
        for item in argv
        if item == '--verbose' or re.fullmatch(r'-v+', item)
    )
