from __future__ import annotations

import sys
from pathlib import Path
from typing import Sequence

import scriptconfig as scfg
from loguru import logger

from ..settings import LauncherSettings, load_settings
from ..util import which, run_cmd

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    settings = scfg.Value(
        None, help='Path to settings TOML (default: user config dir).'
    )
    profiles = scfg.Value(
        None, help='Path to profiles JSON (overrides settings.profiles_file).'
    )
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )


def _load_settings(args) -> LauncherSettings:
    path = Path(args.settings) if args.settings else None
    settings = load_settings(path)
    if args.profiles:
        settings.profiles_file = str(args.profiles)
    return settings


def _ask(prompt: str, default: str = '') -> str:
    raw = input(prompt).strip()
    return raw or default


def _confirm(prompt: str, *, default: bool = True) -> bool:
    ans = input(prompt).strip().lower()
    if not ans:
        return default
    return ans in {'y', 'yes'}


def _choose(options: Sequence[str], *, title: str) -> int | None:
    """Numbered selection; returns the 0-based index or None for Back."""
    if not options:
        return None
    print(title)
    for idx, item in enumerate(options, start=1):
        print(f'  {idx}. {item}')
    print(f'  {len(options) + 1}. Back')
    while True:
        raw = input('Select number: ').strip()
        if not raw.isdigit():
            print('Please enter a number.')
            continue
        choice = int(raw)
        if 1 <= choice <= len(options):
            return choice - 1
        if choice == len(options) + 1:
            return None
        print('Invalid choice!')


def _pick_file(options: Sequence[str], *, prompt: str = 'File ▶ ') -> str | None:
    """Pick one path with fzf when available, else a numbered prompt."""
    if not options:
        return None
    if which('fzf') and sys.stdin.isatty():
        res = run_cmd(
            ['fzf', '--height', '40%', '--reverse', f'--prompt={prompt}'],
            check=False,
            capture=True,
            input_text='\n'.join(options) + '\n',
        )
        choice = res.stdout.strip()
        return choice or None
    idx = _choose(list(options), title='Select a file:')
    return None if idx is None else options[idx]


__all__ = [name for name in globals() if not name.startswith('__')]
