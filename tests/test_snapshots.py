"""Tests for the snapshot manager state machine."""

from __future__ import annotations

import pytest

from qlaunch.config import DiskEntry, DiskSet, VMConfig
from qlaunch.errors import (
    ExternalToolFailure,
    PreconditionError,
    UnsupportedOperationError,
    ValidationError,
)
from qlaunch.snapshots import IDLE, SnapshotManager


class FakeBackend:
    def __init__(self, fmt='qcow2', tags=None, fail=False):
        self.fmt = fmt
        self.tags = list(tags or [])
        self.fail = fail
        self.calls = []

    def image_format(self, path):
        self.calls.append(('info', path))
        return self.fmt

    def snapshot_list(self, path):
        self.calls.append(('list', path))
        return list(self.tags)

    def snapshot_list_text(self, path):
        self.calls.append(('tree', path))
        return 'Snapshot list:\nID TAG\n' + ''.join(
            f'{i} {t}\n' for i, t in enumerate(self.tags, start=1)
        )

    def snapshot_create(self, path, name):
        self.calls.append(('create', path, name))
        if self.fail:
            raise ExternalToolFailure('Snapshot creation error')
        self.tags.append(name)

    def snapshot_delete(self, path, tag):
        self.calls.append(('delete', path, tag))
        self.tags.remove(tag)


def _cfg(*paths: str) -> VMConfig:
    return VMConfig(disks=DiskSet([DiskEntry(path=p) for p in paths]))


def test_create_without_disk_never_calls_backend() -> None:
    backend = FakeBackend()
    mgr = SnapshotManager(backend)
    with pytest.raises(PreconditionError):
        mgr.create(VMConfig(), 'clean')
    assert backend.calls == []
    assert mgr.state == IDLE


def test_non_qcow2_disk_is_unsupported() -> None:
    backend = FakeBackend(fmt='raw')
    mgr = SnapshotManager(backend)
    with pytest.raises(UnsupportedOperationError):
        mgr.list(_cfg('/vm/a.qcow2'))
    # The declared format does not matter, only the detected one.
    cfg = VMConfig(disks=DiskSet([DiskEntry('/vm/a.qcow2', format='qcow2')]))
    with pytest.raises(UnsupportedOperationError):
        mgr.create(cfg, 'x')
    assert not any(c[0] == 'create' for c in backend.calls)
    assert mgr.state == IDLE


def test_create_uses_first_disk_then_legacy() -> None:
    backend = FakeBackend()
    mgr = SnapshotManager(backend)
    assert mgr.create(_cfg('/vm/a.qcow2', '/vm/b.qcow2'), ' clean ') == 'clean'
    assert ('create', '/vm/a.qcow2', 'clean') in backend.calls
    mgr.create(VMConfig(legacy_disk='/vm/legacy.qcow2'), 'old')
    assert ('create', '/vm/legacy.qcow2', 'old') in backend.calls


def test_create_validation_and_failure_return_to_idle() -> None:
    backend = FakeBackend(fail=True)
    mgr = SnapshotManager(backend)
    with pytest.raises(ValidationError):
        mgr.create(_cfg('/vm/a.qcow2'), '  ')
    with pytest.raises(ExternalToolFailure):
        mgr.create(_cfg('/vm/a.qcow2'), 'snap')
    assert mgr.state == IDLE


def test_delete_and_select_require_snapshots() -> None:
    backend = FakeBackend()
    mgr = SnapshotManager(backend)
    cfg = _cfg('/vm/a.qcow2')
    with pytest.raises(PreconditionError):
        mgr.delete(cfg, 'x')
    with pytest.raises(PreconditionError):
        mgr.select_for_load(cfg, 'x')
    assert cfg.pending_snapshot_load is None
    assert not any(c[0] == 'delete' for c in backend.calls)


def test_list_delete_select() -> None:
    backend = FakeBackend(tags=['clean', 'updated'])
    mgr = SnapshotManager(backend)
    cfg = _cfg('/vm/a.qcow2')
    assert mgr.list(cfg) == ['clean', 'updated']
    assert 'updated' in mgr.tree(cfg)
    mgr.delete(cfg, 'clean')
    assert mgr.list(cfg) == ['updated']
    with pytest.raises(PreconditionError):
        mgr.select_for_load(cfg, 'clean')
    out = mgr.select_for_load(cfg, 'updated')
    assert out is cfg
    assert cfg.pending_snapshot_load == 'updated'
    assert mgr.state == IDLE
