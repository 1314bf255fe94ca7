"""Snapshot management for the first (qcow2) disk of a VM configuration."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from loguru import logger

from .config import VMConfig
from .errors import PreconditionError, UnsupportedOperationError, ValidationError
from .qemu_img import QemuImg

log = logger

IDLE = 'idle'
LISTING = 'listing'
CREATING = 'creating'
DELETING = 'deleting'
SELECTING = 'selecting'


class SnapshotManager:
    """
    Create, delete, list, and select-for-load snapshots of one disk.

    The target disk is the first entry of ``cfg.disks``, or the legacy single
    disk when the disk set is empty. Every operation first checks that the
    target's on-disk format, as reported by the image backend, is qcow2.

    Args:
        backend: object providing ``image_format``, ``snapshot_list``,
            ``snapshot_list_text``, ``snapshot_create`` and
            ``snapshot_delete``. Defaults to :class:`QemuImg`.
    """

    def __init__(self, backend=None):
        self.backend = backend if backend is not None else QemuImg()
        self.state = IDLE

    @contextmanager
    def _enter(self, state: str) -> Iterator[None]:
        self.state = state
        try:
            yield
        finally:
            self.state = IDLE

    def target_disk(self, cfg: VMConfig) -> str:
        disk = cfg.snapshot_disk()
        if not disk:
            raise PreconditionError('No disk selected for snapshot operations!')
        fmt = self.backend.image_format(disk)
        if fmt != 'qcow2':
            raise UnsupportedOperationError(
                f'Snapshots are supported only for qcow2 disks! '
                f'({disk} is {fmt or "unknown"})'
            )
        return disk

    def _tags(self, disk: str) -> list[str]:
        return list(self.backend.snapshot_list(disk))

    def list(self, cfg: VMConfig) -> list[str]:
        with self._enter(LISTING):
            disk = self.target_disk(cfg)
            return self._tags(disk)

    def tree(self, cfg: VMConfig) -> str:
        with self._enter(LISTING):
            disk = self.target_disk(cfg)
            return self.backend.snapshot_list_text(disk)

    def create(self, cfg: VMConfig, name: str) -> str:
        with self._enter(CREATING):
            disk = self.target_disk(cfg)
            name = (name or '').strip()
            if not name:
                raise ValidationError('Snapshot name not specified!')
            log.info("Creating snapshot '{}' of {}", name, disk)
            self.backend.snapshot_create(disk, name)
            return name

    def _existing(self, disk: str, tag: str, action: str) -> None:
        tags = self._tags(disk)
        if not tags:
            raise PreconditionError(f'No snapshots to {action}!')
        if tag not in tags:
            raise PreconditionError(
                f"Unknown snapshot '{tag}'; existing: {', '.join(tags)}"
            )

    def delete(self, cfg: VMConfig, tag: str) -> str:
        with self._enter(DELETING):
            disk = self.target_disk(cfg)
            self._existing(disk, tag, 'delete')
            log.info("Deleting snapshot '{}' of {}", tag, disk)
            self.backend.snapshot_delete(disk, tag)
            return tag

    def select_for_load(self, cfg: VMConfig, tag: str) -> VMConfig:
        with self._enter(SELECTING):
            disk = self.target_disk(cfg)
            self._existing(disk, tag, 'load')
            cfg.pending_snapshot_load = tag
            log.info("Snapshot '{}' will be loaded on next run", tag)
            return cfg
