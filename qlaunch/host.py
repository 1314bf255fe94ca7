"""Host probes: virtualization support, qemu binaries, image discovery, tool checks."""

from __future__ import annotations

import os
import re
from fnmatch import fnmatch
from pathlib import Path
from typing import Sequence

from loguru import logger

from .util import which

log = logger

CPUINFO_PATH = Path('/proc/cpuinfo')

REQUIRED_CMDS = ['qemu-img', 'lsusb', 'sudo']
OPTIONAL_CMDS = ['fzf', 'lsblk', 'qemu-system-x86_64']

DISK_PATTERNS = ('*.qcow2', '*.img', '*.raw')
ISO_PATTERNS = ('*.iso', '*.img')

_VIRT_FLAGS = re.compile(r'\b(vmx|svm)\b')


def check_commands() -> tuple[list[str], list[str]]:
    missing = [c for c in REQUIRED_CMDS if which(c) is None]
    missing_opt = [c for c in OPTIONAL_CMDS if which(c) is None]
    return missing, missing_opt


def kvm_supported(cpuinfo: Path = CPUINFO_PATH) -> bool:
    """True if the CPU advertises Intel VT-x (vmx) or AMD-V (svm)."""
    try:
        text = cpuinfo.read_text(encoding='utf-8', errors='ignore')
    except OSError as ex:
        log.warning('Cannot read {}: {}', cpuinfo, ex)
        return False
    return _VIRT_FLAGS.search(text) is not None


def qemu_binaries(path_env: str | None = None) -> list[str]:
    """Names of ``qemu-system-*`` executables found on PATH."""
    found: set[str] = set()
    raw = os.environ.get('PATH', '') if path_env is None else path_env
    for entry in raw.split(os.pathsep):
        if not entry:
            continue
        d = Path(entry)
        if not d.is_dir():
            continue
        try:
            for p in d.glob('qemu-system-*'):
                if p.is_file() and os.access(p, os.X_OK):
                    found.add(p.name)
        except OSError:
            continue
    return sorted(found)


def find_image_files(
    search_dirs: Sequence[Path], patterns: Sequence[str], *, max_depth: int = 2
) -> list[Path]:
    """
    Case-insensitively match ``patterns`` in each directory up to ``max_depth``.

    Patterns are tried in order, so all ``*.qcow2`` files precede ``*.img``
    files within one directory.
    """
    found: list[Path] = []
    seen: set[Path] = set()
    lowered = [p.lower() for p in patterns]
    for root in search_dirs:
        root = Path(root)
        if not root.is_dir():
            continue
        candidates: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root):
            depth = len(Path(dirpath).relative_to(root).parts)
            if depth + 1 >= max_depth:
                dirnames[:] = []
            candidates.extend(Path(dirpath) / f for f in filenames)
        for pat in lowered:
            for p in sorted(candidates):
                if not fnmatch(p.name.lower(), pat):
                    continue
                key = p.resolve()
                if key in seen:
                    continue
                seen.add(key)
                found.append(p)
    return found
