"""Named profile persistence in a single JSON file."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from .config import (
    CACHE_MODES,
    DISK_FORMATS,
    FIRMWARES,
    INTERFACES,
    NETWORK_LABELS,
    USB_NOT_SELECTED,
    DiskEntry,
    DiskSet,
    USBDeviceRef,
    VMConfig,
)
from .errors import PreconditionError, ValidationError
from .util import ensure_dir

log = logger


def _network_from_info(net_info: str) -> str | None:
    text = (net_info or '').strip()
    if not text:
        return None
    for mode, label in NETWORK_LABELS.items():
        if text in (mode, label):
            return mode
    log.warning('Unknown net_info {!r} in profile; leaving network unset', text)
    return None


def _choice(value, allowed: tuple[str, ...], default: str) -> str:
    value = str(value or '').strip()
    return value if value in allowed else default


def profile_to_dict(cfg: VMConfig) -> dict:
    return {
        'disk': cfg.legacy_disk,
        'disks': [
            {
                'path': d.path,
                'iface': d.interface,
                'cache': d.cache,
                'format': d.format,
            }
            for d in cfg.disks
        ],
        'iso': cfg.iso_path,
        'ram': cfg.ram,
        'cores': '' if cfg.cores is None else str(cfg.cores),
        'firmware': cfg.firmware,
        'net_info': cfg.network_label if cfg.network_mode else '',
        'kvm': 'yes' if cfg.kvm_requested else 'no',
        'usb_info': cfg.usb_info,
        'usb_devices': [
            {
                'vendor_id': u.vendor_id,
                'product_id': u.product_id,
                'description': u.description,
                'bus': u.bus,
                'device_number': u.device_number,
            }
            for u in cfg.usb_selections
        ],
        'qemu_bin': cfg.binary_name,
    }


def profile_from_dict(raw: dict) -> VMConfig:
    cfg = VMConfig()
    entries: list[DiskEntry] = []
    for item in raw.get('disks', None) or []:
        if not isinstance(item, dict):
            continue
        path = str(item.get('path', '') or '').strip()
        if not path:
            continue
        entries.append(
            DiskEntry(
                path=path,
                interface=_choice(item.get('iface'), INTERFACES, 'virtio'),
                cache=_choice(item.get('cache'), CACHE_MODES, 'none'),
                format=_choice(item.get('format'), DISK_FORMATS, 'auto'),
            )
        )
    cfg.disks = DiskSet(entries)
    cfg.legacy_disk = str(raw.get('disk', '') or '')
    cfg.iso_path = str(raw.get('iso', '') or '')
    cfg.ram = str(raw.get('ram', '') or '')
    cores = str(raw.get('cores', '') or '').strip()
    cfg.cores = int(cores) if cores.isdigit() and int(cores) > 0 else None
    cfg.firmware = _choice(raw.get('firmware'), FIRMWARES, 'BIOS')
    cfg.network_mode = _network_from_info(str(raw.get('net_info', '') or ''))
    cfg.kvm_requested = str(raw.get('kvm', 'yes') or 'yes').lower() != 'no'
    for item in raw.get('usb_devices', None) or []:
        if not isinstance(item, dict):
            continue
        vid = str(item.get('vendor_id', '') or '')
        pid = str(item.get('product_id', '') or '')
        if not vid or not pid:
            continue
        cfg.usb_selections.append(
            USBDeviceRef(
                vendor_id=vid,
                product_id=pid,
                description=str(item.get('description', '') or ''),
                bus=item.get('bus') or None,
                device_number=item.get('device_number') or None,
            )
        )
    usb_info = raw.get('usb_info')
    if usb_info is None or (not usb_info and not cfg.usb_selections):
        # devices without vendor text compose an empty summary
        cfg.usb_info = USB_NOT_SELECTED
    else:
        cfg.usb_info = str(usb_info)
    cfg.binary_name = str(raw.get('qemu_bin', '') or '')
    return cfg


def load_profiles(path: Path) -> dict[str, dict]:
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding='utf-8') or '{}')
    except ValueError as ex:
        raise PreconditionError(f'Profiles file is not valid JSON: {path}: {ex}') from ex
    except OSError as ex:
        raise PreconditionError(f'Cannot read profiles file {path}: {ex}') from ex
    if not isinstance(raw, dict):
        raise PreconditionError(f'Profiles file is not a JSON object: {path}')
    return {str(k): v for k, v in raw.items() if isinstance(v, dict)}


def profile_names(path: Path) -> list[str]:
    return list(load_profiles(path))


def load_profile(name: str, path: Path) -> VMConfig:
    if not path.exists():
        raise PreconditionError(f'{path.name} file not found!')
    profiles = load_profiles(path)
    if not profiles:
        raise PreconditionError('No saved profiles!')
    if name not in profiles:
        raise PreconditionError(
            f"Profile '{name}' not found; available: {', '.join(profiles)}"
        )
    log.debug("Loading profile '{}' from {}", name, path)
    return profile_from_dict(profiles[name])


def save_profile(cfg: VMConfig, name: str, path: Path) -> Path:
    name = (name or '').strip()
    if not name:
        raise ValidationError('Profile name not specified!')
    profiles = load_profiles(path)
    profiles[name] = profile_to_dict(cfg)
    tmp = path.with_name(path.name + '.tmp')
    try:
        ensure_dir(path.parent)
        tmp.write_text(json.dumps(profiles, indent=2) + '\n', encoding='utf-8')
        tmp.replace(path)
    except OSError as ex:
        raise PreconditionError(f'Cannot write profiles file {path}: {ex}') from ex
    log.debug("Saved profile '{}' to {}", name, path)
    return path
