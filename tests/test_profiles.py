"""Tests for profile JSON persistence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from qlaunch.config import DiskEntry, DiskSet, USBDeviceRef, VMConfig
from qlaunch.errors import PreconditionError, ValidationError
from qlaunch.profiles import (
    load_profile,
    load_profiles,
    profile_names,
    save_profile,
)
from qlaunch.usb import parse_lsusb_line, resolve_usb


def _full_cfg() -> VMConfig:
    return VMConfig(
        disks=DiskSet([
            DiskEntry('/vm/a.qcow2', 'virtio', 'none', 'qcow2'),
            DiskEntry('/vm/b.img', 'sata', 'writeback', 'raw'),
            DiskEntry('/dev/sdc', 'scsi', 'writethrough', 'auto'),
        ]),
        legacy_disk='/vm/a.qcow2',
        iso_path='/iso/debian.iso',
        ram='8G',
        cores=6,
        firmware='UEFI',
        network_mode='Tap',
        kvm_requested=False,
        usb_selections=[
            USBDeviceRef('046d', 'c52b', 'Receiver', bus='003', device_number='012'),
            USBDeviceRef('1234', 'abcd', 'Pad'),
        ],
        usb_info='Receiver, Pad',
        binary_name='qemu-system-aarch64',
    )


def test_profile_roundtrip(tmp_path: Path) -> None:
    fpath = tmp_path / 'sub' / 'profiles.json'
    cfg = _full_cfg()
    save_profile(cfg, 'work', fpath)
    assert fpath.exists()
    loaded = load_profile('work', fpath)
    assert loaded == cfg


def test_roundtrip_of_defaults(tmp_path: Path) -> None:
    fpath = tmp_path / 'profiles.json'
    save_profile(VMConfig(), 'empty', fpath)
    assert load_profile('empty', fpath) == VMConfig()


def test_pending_snapshot_is_not_persisted(tmp_path: Path) -> None:
    fpath = tmp_path / 'profiles.json'
    save_profile(VMConfig(pending_snapshot_load='clean'), 'p', fpath)
    assert load_profile('p', fpath).pending_snapshot_load is None


def test_persisted_layout(tmp_path: Path) -> None:
    fpath = tmp_path / 'profiles.json'
    save_profile(_full_cfg(), 'work', fpath)
    raw = json.loads(fpath.read_text())
    body = raw['work']
    for key in ('disk', 'disks', 'iso', 'ram', 'cores', 'firmware',
                'net_info', 'kvm', 'usb_info', 'qemu_bin'):
        assert key in body
    assert body['disks'][1] == {
        'path': '/vm/b.img', 'iface': 'sata', 'cache': 'writeback', 'format': 'raw',
    }
    assert body['kvm'] == 'no'
    assert body['cores'] == '6'
    assert body['net_info'] == 'Tap (advanced)'


def test_save_overwrites_named_entry_only(tmp_path: Path) -> None:
    fpath = tmp_path / 'profiles.json'
    save_profile(VMConfig(ram='1G'), 'a', fpath)
    save_profile(VMConfig(ram='2G'), 'b', fpath)
    save_profile(VMConfig(ram='3G'), 'a', fpath)
    assert profile_names(fpath) == ['a', 'b']
    assert load_profile('a', fpath).ram == '3G'
    assert load_profile('b', fpath).ram == '2G'


def test_save_requires_name(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        save_profile(VMConfig(), '  ', tmp_path / 'profiles.json')
    assert not (tmp_path / 'profiles.json').exists()


def test_load_preconditions(tmp_path: Path) -> None:
    fpath = tmp_path / 'profiles.json'
    with pytest.raises(PreconditionError, match='not found'):
        load_profile('x', fpath)
    fpath.write_text('{}')
    with pytest.raises(PreconditionError, match='No saved profiles'):
        load_profile('x', fpath)
    save_profile(VMConfig(), 'a', fpath)
    with pytest.raises(PreconditionError):
        load_profile('x', fpath)


def test_load_shell_written_profile(tmp_path: Path) -> None:
    # Profiles written by older launchers store network and empty values as text.
    fpath = tmp_path / 'profiles.json'
    fpath.write_text(json.dumps({
        'old': {
            'disk': '/vm/old.qcow2',
            'disks': [],
            'iso': '',
            'ram': '',
            'cores': '',
            'firmware': '',
            'net_info': 'NAT with port forwarding',
            'kvm': 'yes',
            'usb_info': '',
            'qemu_bin': '',
        },
    }))
    cfg = load_profile('old', fpath)
    assert len(cfg.disks) == 0
    assert cfg.legacy_disk == '/vm/old.qcow2'
    assert cfg.cores is None
    assert cfg.firmware == 'BIOS'
    assert cfg.network_mode == 'NAT'
    assert cfg.kvm_requested is True
    assert cfg.usb_info == 'not selected'
    assert load_profiles(fpath).keys() == {'old'}


def test_corrupt_profiles_file(tmp_path: Path) -> None:
    fpath = tmp_path / 'profiles.json'
    fpath.write_text('{not json')
    with pytest.raises(PreconditionError, match='not valid JSON'):
        load_profiles(fpath)
    with pytest.raises(PreconditionError, match='not valid JSON'):
        load_profile('x', fpath)
    with pytest.raises(PreconditionError, match='not valid JSON'):
        save_profile(VMConfig(), 'x', fpath)
    assert fpath.read_text() == '{not json'


def test_unwritable_profiles_location(tmp_path: Path) -> None:
    blocker = tmp_path / 'blocker'
    blocker.write_text('')
    with pytest.raises(PreconditionError, match='Cannot write profiles file'):
        save_profile(VMConfig(), 'x', blocker / 'profiles.json')


def test_roundtrip_of_usb_device_without_vendor_text(tmp_path: Path) -> None:
    ref = parse_lsusb_line('Bus 001 Device 004: ID 1234:abcd')
    cfg = VMConfig(usb_selections=[ref])
    cfg.usb_info = resolve_usb(cfg.usb_selections, lookup=lambda ref: None).description
    assert cfg.usb_info == ''
    fpath = tmp_path / 'profiles.json'
    save_profile(cfg, 'bare', fpath)
    loaded = load_profile('bare', fpath)
    assert loaded.usb_info == ''
    assert loaded.usb_selections == [ref]
