"""Compile a VM configuration into the qemu-system argument vector."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from .config import DiskEntry, VMConfig, infer_format
from .errors import MissingResourceWarning
from .host import kvm_supported
from .settings import DEFAULT_OVMF_PATH, DEFAULT_QEMU_BIN
from .usb import UsbResolution
from .util import shell_join

log = logger

DEFAULT_RAM = '2G'
DEFAULT_CORES = 2
VM_NAME = 'QEMU_VM'

NETWORK_ARGS = {
    'NAT': ['-net', 'user,hostfwd=tcp::2222-:22', '-net', 'nic'],
    'Tap': ['-net', 'nic', '-net', 'tap,ifname=tap0,script=no'],
    'None': ['-net', 'none'],
}


@dataclass
class Invocation:
    argv: list[str]
    warnings: list[MissingResourceWarning] = field(default_factory=list)
    loaded_snapshot: Optional[str] = None
    discarded_snapshot: Optional[str] = None

    def command(self, *, sudo: bool = True) -> list[str]:
        if sudo and os.geteuid() != 0:
            return ['sudo', *self.argv]
        return list(self.argv)

    def shell(self, *, sudo: bool = True) -> str:
        return shell_join(self.command(sudo=sudo))


def resolve_format(entry: DiskEntry) -> str:
    """Explicit format wins; ``auto`` is inferred, falling back to qcow2."""
    if entry.format != 'auto':
        return entry.format
    fmt = infer_format(entry.path)
    return 'qcow2' if fmt == 'auto' else fmt


def drive_args(index: int, entry: DiskEntry) -> list[str]:
    spec = ','.join([
        f'file={entry.path}',
        f'if={entry.interface}',
        f'cache={entry.cache}',
        f'format={resolve_format(entry)}',
        f'index={index}',
        f'id=disk{index + 1}',
    ])
    return ['-drive', spec]


def compile_invocation(
    cfg: VMConfig,
    usb: UsbResolution | None = None,
    *,
    kvm_probe: Callable[[], bool] = kvm_supported,
    ovmf_path: str | Path = DEFAULT_OVMF_PATH,
    default_binary: str = DEFAULT_QEMU_BIN,
) -> Invocation:
    """
    Build the hypervisor command for ``cfg``.

    Never raises for missing optional data: an absent UEFI firmware image is
    reported through ``Invocation.warnings`` and the VM boots with BIOS.

    The pending snapshot-load marker on ``cfg`` is consumed: it is always
    cleared, and only turned into ``-loadvm`` when the disk set is non-empty.
    """
    inv = Invocation(argv=[cfg.binary_name or default_binary])
    argv = inv.argv
    argv += ['-m', cfg.ram or DEFAULT_RAM]
    argv += ['-smp', str(cfg.cores or DEFAULT_CORES)]

    if len(cfg.disks):
        for index, entry in enumerate(cfg.disks):
            argv += drive_args(index, entry)
    elif cfg.legacy_disk:
        argv += ['-hda', cfg.legacy_disk]

    if cfg.iso_path:
        argv += ['-cdrom', cfg.iso_path]

    if cfg.firmware == 'UEFI':
        if Path(ovmf_path).is_file():
            argv += [
                '-drive',
                f'if=pflash,format=raw,readonly=on,file={ovmf_path}',
            ]
        else:
            msg = f'OVMF not found at {ovmf_path}! Using BIOS'
            log.warning(msg)
            inv.warnings.append(MissingResourceWarning(msg))

    if cfg.network_mode is not None:
        argv += NETWORK_ARGS.get(cfg.network_mode, [])

    if cfg.kvm_requested and kvm_probe():
        argv += ['-enable-kvm']

    if usb is not None:
        argv += usb.args

    argv += ['-boot', 'menu=on', '-name', VM_NAME]

    tag = cfg.pending_snapshot_load
    if tag:
        if len(cfg.disks):
            argv += ['-loadvm', tag]
            inv.loaded_snapshot = tag
            log.info('Snapshot will be loaded: {}', tag)
        else:
            inv.discarded_snapshot = tag
            log.warning(
                "Snapshot '{}' not loaded: no disks in the disk set", tag
            )
    cfg.pending_snapshot_load = None
    return inv
