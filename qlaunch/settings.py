"""Launcher settings loaded from an optional TOML file in the user config dir."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import ubelt as ub
from loguru import logger

from .util import expand

log = logger

APPNAME = 'qemu-launch'
DEFAULT_QEMU_BIN = 'qemu-system-x86_64'
DEFAULT_OVMF_PATH = '/usr/share/edk2-ovmf/x64/OVMF.4m.fd'
DEFAULT_USB_BY_ID_DIR = '/dev/disk/by-id'


@dataclass
class LauncherSettings:
    profiles_file: str = ''
    ovmf_path: str = DEFAULT_OVMF_PATH
    default_binary: str = DEFAULT_QEMU_BIN
    search_dirs: list[str] = field(
        default_factory=lambda: [
            './disk_img',
            './',
            '~/ISO',
            '~/Downloads',
        ]
    )
    usb_by_id_dir: str = DEFAULT_USB_BY_ID_DIR
    use_sudo: bool = True
    verbosity: int = 1

    def resolved_profiles_file(self) -> Path:
        if self.profiles_file:
            return Path(expand(self.profiles_file))
        return config_dir() / 'profiles.json'

    def expanded_search_dirs(self) -> list[Path]:
        return [Path(expand(d)) for d in self.search_dirs]


def config_dir() -> Path:
    p = ub.Path.appdir(APPNAME, type='config').ensuredir()
    return Path(p)


def settings_path() -> Path:
    return config_dir() / 'settings.toml'


def load_settings(path: Path | None = None) -> LauncherSettings:
    fpath = path or settings_path()
    settings = LauncherSettings()
    if not fpath.exists():
        log.debug('No settings file at {}; using defaults', fpath)
        return settings
    raw = tomllib.loads(fpath.read_text(encoding='utf-8'))
    for k, v in raw.items():
        if hasattr(settings, k):
            setattr(settings, k, v)
        else:
            log.warning('Ignoring unknown settings key {!r} in {}', k, fpath)
    settings.verbosity = int(settings.verbosity)
    settings.use_sudo = bool(settings.use_sudo)
    settings.search_dirs = [str(d) for d in settings.search_dirs]
    return settings
