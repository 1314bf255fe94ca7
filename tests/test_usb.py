"""Tests for USB enumeration parsing and passthrough resolution."""

from __future__ import annotations

from pathlib import Path

from qlaunch.config import USBDeviceRef
from qlaunch.usb import (
    find_storage_path,
    list_usb_devices,
    parse_lsusb,
    resolve_usb,
)
from qlaunch.util import CmdResult

LSUSB = (
    'Bus 001 Device 001: ID 1d6b:0002 Linux Foundation 2.0 root hub\n'
    'Bus 001 Device 007: ID 0781:5581 SanDisk Corp. Ultra\n'
    'Bus 003 Device 012: ID 046d:c52b Logitech, Inc. Unifying Receiver\n'
    'not a device line\n'
)


def test_parse_lsusb_columns() -> None:
    devices = parse_lsusb(LSUSB)
    assert len(devices) == 3
    ref = devices[2]
    assert ref.vendor_id == '046d'
    assert ref.product_id == 'c52b'
    assert ref.description == 'Logitech, Inc. Unifying Receiver'
    assert ref.bus == '003'
    assert ref.device_number == '012'


def test_list_usb_devices_handles_tool_failure(monkeypatch) -> None:
    monkeypatch.setattr(
        'qlaunch.usb.run_cmd',
        lambda cmd, **kwargs: CmdResult(1, '', 'lsusb: not found'),
    )
    assert list_usb_devices() == []
    monkeypatch.setattr(
        'qlaunch.usb.run_cmd', lambda cmd, **kwargs: CmdResult(0, LSUSB, '')
    )
    assert [d.id_string for d in list_usb_devices()] == [
        '1d6b:0002',
        '0781:5581',
        '046d:c52b',
    ]


def test_resolve_empty_selection() -> None:
    res = resolve_usb([])
    assert res.args == []
    assert res.description == 'not selected'


def test_resolve_two_generic_devices_single_controller() -> None:
    a = USBDeviceRef('046d', 'c52b', 'Receiver', bus='003', device_number='012')
    b = USBDeviceRef('1234', 'abcd', 'Gamepad')
    res = resolve_usb([a, b], lookup=lambda ref: None)
    assert res.args == [
        '-device', 'qemu-xhci',
        '-device', 'usb-host,hostbus=3,hostaddr=12',
        '-device', 'usb-host,vendorid=0x1234,productid=0xabcd',
    ]
    assert res.description == 'Receiver, Gamepad'
    assert [mode for _, mode in res.attached] == ['usb-host', 'usb-host']


def test_resolve_storage_before_generic() -> None:
    disk = USBDeviceRef('0781', '5581', 'SanDisk', bus='001', device_number='007')
    mouse = USBDeviceRef('046d', 'c077', 'Mouse', bus='001', device_number='003')
    paths = {'0781:5581': '/dev/disk/by-id/usb-SanDisk_0781-5581-0:0'}
    res = resolve_usb([disk, mouse], lookup=lambda ref: paths.get(ref.id_string))
    assert res.args == [
        '-drive',
        'file=/dev/disk/by-id/usb-SanDisk_0781-5581-0:0,format=raw,if=none,id=usb_drive_0781_5581',
        '-device', 'ide-hd,drive=usb_drive_0781_5581',
        '-device', 'qemu-xhci',
        '-device', 'usb-host,hostbus=1,hostaddr=3',
    ]
    assert res.description == 'SanDisk, Mouse'
    assert res.attached[0][1] == 'storage'


def test_find_storage_path(tmp_path: Path) -> None:
    by_id = tmp_path / 'by-id'
    by_id.mkdir()
    (by_id / 'usb-Vendor_0781_Flash-5581-0:0').write_text('')
    (by_id / 'ata-Other_disk').write_text('')
    ref = USBDeviceRef('0781', '5581', 'Flash')
    got = find_storage_path(ref, by_id)
    assert got == str(by_id / 'usb-Vendor_0781_Flash-5581-0:0')
    assert find_storage_path(USBDeviceRef('aaaa', 'bbbb'), by_id) is None
    assert find_storage_path(ref, tmp_path / 'missing') is None
