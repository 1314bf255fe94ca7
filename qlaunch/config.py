"""In-memory VM configuration model: disk set, USB selections, scalar settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Iterator, Optional

from .errors import PreconditionError, ValidationError

INTERFACES = ('virtio', 'sata', 'scsi')
CACHE_MODES = ('none', 'writeback', 'writethrough')
DISK_FORMATS = ('qcow2', 'raw', 'auto')
FIRMWARES = ('BIOS', 'UEFI')
NETWORK_MODES = ('NAT', 'Tap', 'None')

NETWORK_LABELS = {
    'NAT': 'NAT with port forwarding',
    'Tap': 'Tap (advanced)',
    'None': 'No network',
}

USB_NOT_SELECTED = 'not selected'

_EXT_FORMATS = {
    '.qcow2': 'qcow2',
    '.img': 'raw',
    '.raw': 'raw',
}


def infer_format(path: str) -> str:
    """
    Guess a disk format from the file extension.

    Returns ``auto`` when the extension is not recognized; the compiler
    resolves that later.

    Example:
        >>> infer_format('/vm/win.QCOW2'), infer_format('a.img'), infer_format('/dev/sdb')
        ('qcow2', 'raw', 'auto')
    """
    return _EXT_FORMATS.get(PurePath(path).suffix.lower(), 'auto')


def _check_choice(kind: str, value: str, allowed: tuple[str, ...]) -> None:
    if value not in allowed:
        raise ValidationError(
            f'Invalid {kind} {value!r}; expected one of: {", ".join(allowed)}'
        )


@dataclass
class DiskEntry:
    path: str
    interface: str = 'virtio'
    cache: str = 'none'
    format: str = 'auto'

    def describe(self) -> str:
        return (
            f'{self.path} [interface: {self.interface}, cache: {self.cache}, '
            f'format: {self.format}]'
        )


@dataclass
class DiskSet:
    """Ordered disks; the position of an entry is its drive index."""

    entries: list[DiskEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[DiskEntry]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> DiskEntry:
        return self.entries[index]

    def first(self) -> Optional[DiskEntry]:
        return self.entries[0] if self.entries else None

    def check_index(self, index: int) -> None:
        if not 0 <= index < len(self.entries):
            raise PreconditionError(
                f'Invalid disk number {index + 1}; '
                f'{len(self.entries)} disk(s) configured'
            )

    def add(self, entry: DiskEntry) -> DiskEntry:
        if not (entry.path or '').strip():
            raise ValidationError('Disk path not specified')
        _check_choice('interface', entry.interface, INTERFACES)
        _check_choice('cache mode', entry.cache, CACHE_MODES)
        _check_choice('format', entry.format, DISK_FORMATS)
        self.entries.append(entry)
        return entry

    def edit(
        self,
        index: int,
        interface: Optional[str] = None,
        cache: Optional[str] = None,
    ) -> DiskEntry:
        self.check_index(index)
        if interface is not None:
            _check_choice('interface', interface, INTERFACES)
        if cache is not None:
            _check_choice('cache mode', cache, CACHE_MODES)
        entry = self.entries[index]
        if interface is not None:
            entry.interface = interface
        if cache is not None:
            entry.cache = cache
        return entry

    def remove(self, index: int) -> DiskEntry:
        self.check_index(index)
        return self.entries.pop(index)

    def clear(self) -> None:
        self.entries.clear()


@dataclass
class USBDeviceRef:
    vendor_id: str
    product_id: str
    description: str = ''
    bus: Optional[str] = None
    device_number: Optional[str] = None

    @property
    def id_string(self) -> str:
        return f'{self.vendor_id}:{self.product_id}'

    @property
    def display_name(self) -> str:
        loc = ''
        if self.bus and self.device_number:
            loc = f' (bus {self.bus}, device {self.device_number})'
        return f'[{self.id_string}] {self.description}{loc}'


@dataclass
class VMConfig:
    disks: DiskSet = field(default_factory=DiskSet)
    legacy_disk: str = ''
    iso_path: str = ''
    ram: str = ''
    cores: Optional[int] = None
    firmware: str = 'BIOS'
    network_mode: Optional[str] = None
    kvm_requested: bool = True
    usb_selections: list[USBDeviceRef] = field(default_factory=list)
    usb_info: str = USB_NOT_SELECTED
    binary_name: str = ''
    pending_snapshot_load: Optional[str] = None

    def select_main_disk(self, path: str, fmt: str = 'auto') -> DiskEntry:
        """Make ``path`` the only disk, as the legacy single-disk flow did."""
        if not (path or '').strip():
            raise ValidationError('Disk path not specified')
        entry = DiskEntry(path=path, format=fmt)
        replacement = DiskSet()
        replacement.add(entry)
        self.disks = replacement
        self.legacy_disk = path
        return entry

    def snapshot_disk(self) -> str:
        first = self.disks.first()
        if first is not None:
            return first.path
        return self.legacy_disk

    def set_firmware(self, firmware: str) -> None:
        _check_choice('firmware', firmware, FIRMWARES)
        self.firmware = firmware

    def set_network(self, mode: Optional[str]) -> None:
        if mode is not None:
            _check_choice('network mode', mode, NETWORK_MODES)
        self.network_mode = mode

    def set_cores(self, value: str | int) -> None:
        try:
            cores = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid core count {value!r}') from None
        if cores < 1:
            raise ValidationError(f'Core count must be positive, got {cores}')
        self.cores = cores

    @property
    def network_label(self) -> str:
        if self.network_mode is None:
            return 'not configured'
        return NETWORK_LABELS[self.network_mode]
