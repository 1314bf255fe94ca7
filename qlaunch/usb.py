"""Host USB enumeration and resolution of selected devices into qemu arguments."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from loguru import logger

from .config import USB_NOT_SELECTED, USBDeviceRef
from .settings import DEFAULT_USB_BY_ID_DIR
from .util import run_cmd

log = logger

# Bus 001 Device 002: ID 046d:c52b Logitech, Inc. Unifying Receiver
_ID_PATTERN = re.compile(r'([0-9a-fA-F]{4}):([0-9a-fA-F]{4})')
_BUS_COLUMN = 1
_DEVICE_COLUMN = 3

USB_CONTROLLER = 'qemu-xhci'

StorageLookup = Callable[[USBDeviceRef], Optional[str]]


def parse_lsusb_line(line: str) -> USBDeviceRef | None:
    """
    Parse one ``lsusb`` line; lines without a ``vendor:product`` id are skipped.

    Example:
        >>> ref = parse_lsusb_line('Bus 001 Device 007: ID 0781:5581 SanDisk Corp. Ultra')
        >>> ref.vendor_id, ref.product_id, ref.description, ref.bus, ref.device_number
        ('0781', '5581', 'SanDisk Corp. Ultra', '001', '007')
        >>> parse_lsusb_line('garbage') is None
        True
    """
    match = _ID_PATTERN.search(line)
    if match is None:
        return None
    desc = line[match.end():].strip()
    parts = line.split()
    bus = parts[_BUS_COLUMN] if len(parts) > _BUS_COLUMN else None
    devnum = None
    if len(parts) > _DEVICE_COLUMN:
        devnum = parts[_DEVICE_COLUMN].rstrip(':') or None
    return USBDeviceRef(
        vendor_id=match.group(1),
        product_id=match.group(2),
        description=desc,
        bus=bus,
        device_number=devnum,
    )


def parse_lsusb(text: str) -> list[USBDeviceRef]:
    devices: list[USBDeviceRef] = []
    for line in text.splitlines():
        ref = parse_lsusb_line(line)
        if ref is not None:
            devices.append(ref)
    return devices


def list_usb_devices() -> list[USBDeviceRef]:
    res = run_cmd(['lsusb'], check=False, capture=True)
    if res.code != 0:
        log.warning('lsusb failed (code={}): {}', res.code, res.stderr.strip())
        return []
    return parse_lsusb(res.stdout)


def find_storage_path(
    ref: USBDeviceRef, by_id_dir: str | Path = DEFAULT_USB_BY_ID_DIR
) -> str | None:
    """Find a block device under ``by_id_dir`` whose name mentions the ids."""
    root = Path(by_id_dir)
    if not root.is_dir():
        return None
    pattern = f'*{ref.vendor_id}*-{ref.product_id}*'
    matches = sorted(root.glob(pattern))
    if not matches:
        return None
    log.debug('USB {} backed by {}', ref.id_string, matches[0])
    return str(matches[0])


def _is_decimal(value: str | None) -> bool:
    return bool(value) and value.isdigit()


def _decimal(value: str) -> str:
    return str(int(value, 10))


@dataclass
class UsbResolution:
    args: list[str] = field(default_factory=list)
    description: str = USB_NOT_SELECTED
    # (device, mode) where mode is "storage" or "usb-host"
    attached: list[tuple[USBDeviceRef, str]] = field(default_factory=list)


def resolve_usb(
    selections: Sequence[USBDeviceRef],
    lookup: StorageLookup = find_storage_path,
) -> UsbResolution:
    if not selections:
        return UsbResolution()
    args: list[str] = []
    attached: list[tuple[USBDeviceRef, str]] = []
    have_controller = False
    for ref in selections:
        vid, pid = ref.vendor_id, ref.product_id
        device_path = lookup(ref)
        if device_path:
            drive_id = f'usb_drive_{vid}_{pid}'
            args += [
                '-drive',
                f'file={device_path},format=raw,if=none,id={drive_id}',
            ]
            args += ['-device', f'ide-hd,drive={drive_id}']
            attached.append((ref, 'storage'))
            log.info('USB storage attached as SATA device: {}', ref.description)
            continue
        if not have_controller:
            args += ['-device', USB_CONTROLLER]
            have_controller = True
        if _is_decimal(ref.bus) and _is_decimal(ref.device_number):
            bus = _decimal(ref.bus)
            addr = _decimal(ref.device_number)
            args += ['-device', f'usb-host,hostbus={bus},hostaddr={addr}']
            log.info(
                'USB device passed through via usb-host (bus {}, addr {}): {}',
                bus,
                addr,
                ref.description,
            )
        else:
            args += [
                '-device',
                f'usb-host,vendorid=0x{vid},productid=0x{pid}',
            ]
            log.info(
                'USB device passed through via usb-host (vid/pid): {}',
                ref.description,
            )
        attached.append((ref, 'usb-host'))
    description = ', '.join(ref.description for ref in selections)
    return UsbResolution(args=args, description=description, attached=attached)
