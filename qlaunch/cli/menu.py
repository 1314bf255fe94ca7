"""Interactive numbered/lettered menu session over one VM configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import scriptconfig as scfg

from ..compiler import Invocation, compile_invocation
from ..config import (
    CACHE_MODES,
    INTERFACES,
    NETWORK_LABELS,
    NETWORK_MODES,
    DiskEntry,
    USBDeviceRef,
    VMConfig,
    infer_format,
)
from ..errors import QLaunchError, ValidationError
from ..host import DISK_PATTERNS, ISO_PATTERNS, find_image_files, qemu_binaries
from ..profiles import load_profile, profile_names, save_profile
from ..qemu_img import create_image
from ..settings import LauncherSettings
from ..snapshots import SnapshotManager
from ..usb import UsbResolution, find_storage_path, list_usb_devices, resolve_usb
from ..util import CmdError, exec_replace, run_cmd
from ._common import (
    _BaseCommand,
    _ask,
    _choose,
    _confirm,
    _load_settings,
    _pick_file,
    log,
)

RULE = '-' * 40


def render_settings(cfg: VMConfig, *, profile: str = '', settings=None) -> str:
    default_bin = settings.default_binary if settings else 'qemu-system-x86_64'
    lines = ['⚙ QEMU Launcher - Current settings', RULE]
    if len(cfg.disks) == 1:
        d = cfg.disks[0]
        lines.append(f'1. 💾 Disk: {d.path} [{d.interface}, cache={d.cache}]')
    elif len(cfg.disks) > 1:
        for i, d in enumerate(cfg.disks, start=1):
            lines.append(
                f'1.{i}. 💾 Disk: {d.path} [{d.interface}, cache={d.cache}]'
            )
    else:
        lines.append(f'1. 💾 Disk: {cfg.legacy_disk or "not selected"}')
    lines += [
        '2. ⚙ Advanced disk settings',
        f'3. 📀 ISO/IMG: {cfg.iso_path or "not selected"}',
        f'4. 🧠 RAM: {cfg.ram or "2G"}',
        f'5. ⚡ CPU cores: {cfg.cores or 2}',
        f'6. 🔌 Firmware: {cfg.firmware}',
        f'7. 🌐 Network: {cfg.network_label}',
        f'8. 💻 Accel: {"yes" if cfg.kvm_requested else "no"}',
        f'9. 🔌 USB: {cfg.usb_info}',
        f'A. 🧩 Arch: {cfg.binary_name or default_bin}',
        'S. 🗂 Snapshots',
        f'P. 📁 Profiles: {profile or "not selected"}',
        RULE,
        '0. 🚀 Start VM',
        'Q. ❌ Exit',
    ]
    return '\n'.join(lines)


@dataclass
class Session:
    settings: LauncherSettings = field(default_factory=LauncherSettings)
    cfg: VMConfig = field(default_factory=VMConfig)
    usb: UsbResolution = field(default_factory=UsbResolution)
    snapshots: SnapshotManager = field(default_factory=SnapshotManager)
    profile: str = ''
    launcher: Callable[[list[str]], int] = exec_replace

    @property
    def profiles_path(self) -> Path:
        return self.settings.resolved_profiles_file()

    def _storage_lookup(self, ref: USBDeviceRef) -> str | None:
        return find_storage_path(ref, self.settings.usb_by_id_dir)

    # -- disks --------------------------------------------------------------

    def _search_dirs(self) -> list[Path]:
        raw = _ask('Specify directory to search? (Enter for default): ')
        if raw and Path(raw).is_dir():
            return [Path(raw)]
        return self.settings.expanded_search_dirs()

    def _pick_disk(self) -> tuple[str, str] | None:
        """Ask how to obtain a disk; returns (path, format) or None."""
        print('1. Create new virtual disk')
        print('2. Select existing file')
        print('3. Enter path manually (e.g., /dev/sdb)')
        print('4. Back')
        method = _ask('Your choice [1-4]: ')
        if method == '1':
            name = _ask('Disk name [myvm.qcow2]: ', 'myvm.qcow2')
            size = _ask('Size [10G]: ', '10G')
            create_image(name, size)
            return str(Path(name).resolve()), 'qcow2'
        if method == '2':
            found = find_image_files(self._search_dirs(), DISK_PATTERNS)
            if not found:
                raise QLaunchError('No disk image files found in selected folders!')
            choice = _pick_file([str(p) for p in found])
            if not choice:
                raise ValidationError('Disk not selected!')
            path = str(Path(choice).resolve())
            return path, infer_format(path)
        if method == '3':
            lsblk = run_cmd(
                ['lsblk', '-d', '-o', 'NAME,SIZE,MODEL'], check=False
            )
            print(lsblk.stdout)
            path = _ask('Enter device path (e.g., /dev/sdb): ')
            if not path:
                raise ValidationError('Path not specified!')
            if not Path(path).is_block_device():
                print(f'⚠ Warning: {path} is not a block device!')
                if not _confirm('Add anyway? [y/N]: ', default=False):
                    return None
            return path, 'raw'
        return None

    def do_main_disk(self) -> str:
        picked = self._pick_disk()
        if picked is None:
            return ''
        path, fmt = picked
        self.cfg.select_main_disk(path, fmt)
        return f'Disk selected: {path}'

    def _ask_interface_cache(self, entry: DiskEntry | None = None):
        cur_if = f' [{entry.interface}]' if entry else ''
        cur_cache = f' [{entry.cache}]' if entry else ''
        iface = _choose(INTERFACES, title=f'Disk interface{cur_if}:')
        cache = _choose(CACHE_MODES, title=f'Caching{cur_cache}:')
        return (
            None if iface is None else INTERFACES[iface],
            None if cache is None else CACHE_MODES[cache],
        )

    def _disk_number(self, prompt: str) -> int:
        raw = _ask(prompt)
        if not raw.lstrip('-').isdigit():
            raise ValidationError('Invalid number!')
        return int(raw) - 1

    def do_advanced_disks(self) -> str:
        while True:
            print('⚙ Advanced disk settings')
            print(RULE)
            if not len(self.cfg.disks):
                print('No disks added.')
            for i, d in enumerate(self.cfg.disks, start=1):
                print(f'{i}. {d.describe()}')
            print(RULE)
            print('A. ➕ Add disk\nE. ✏️  Edit disk\nD. ➖ Delete disk\nB. ⬅️  Back')
            choice = _ask('Select action: ').lower()
            try:
                if choice == 'a':
                    picked = self._pick_disk()
                    if picked is None:
                        continue
                    path, fmt = picked
                    iface, cache = self._ask_interface_cache()
                    self.cfg.disks.add(
                        DiskEntry(
                            path=path,
                            interface=iface or 'virtio',
                            cache=cache or 'none',
                            format=fmt,
                        )
                    )
                    print(f'✅ Disk added: {path}')
                elif choice == 'e':
                    index = self._disk_number('Enter disk number to edit: ')
                    self.cfg.disks.check_index(index)
                    iface, cache = self._ask_interface_cache(self.cfg.disks[index])
                    entry = self.cfg.disks.edit(index, interface=iface, cache=cache)
                    print(f'✅ Disk updated: {entry.path}')
                elif choice == 'd':
                    index = self._disk_number('Enter disk number to delete: ')
                    entry = self.cfg.disks.remove(index)
                    print(f'✅ Disk deleted: {entry.path}')
                elif choice == 'b':
                    return ''
                else:
                    print('❌ Invalid choice!')
            except (QLaunchError, CmdError) as ex:
                print(f'❌ {ex}')

    def do_iso(self) -> str:
        found = find_image_files(self._search_dirs(), ISO_PATTERNS)
        if not found:
            raise QLaunchError('No *.iso|*.img files found in selected folders!')
        choice = _pick_file([str(p) for p in found])
        if not choice:
            raise ValidationError('ISO/IMG not selected!')
        self.cfg.iso_path = str(Path(choice).resolve())
        return f'ISO/IMG selected: {self.cfg.iso_path}'

    # -- scalar settings ----------------------------------------------------

    def do_ram(self) -> str:
        self.cfg.ram = _ask('🧠 RAM size [2G]: ')
        return ''

    def do_cores(self) -> str:
        raw = _ask('⚡ Number of CPU cores [2]: ')
        if raw:
            self.cfg.set_cores(raw)
        else:
            self.cfg.cores = None
        return ''

    def do_firmware(self) -> str:
        idx = _choose(['BIOS', 'UEFI'], title='🔌 Select firmware:')
        if idx is not None:
            self.cfg.set_firmware(['BIOS', 'UEFI'][idx])
        return f'Firmware: {self.cfg.firmware}'

    def do_network(self) -> str:
        labels = [NETWORK_LABELS[m] for m in NETWORK_MODES]
        idx = _choose(labels, title='🌐 Select network type:')
        if idx is None:
            return ''
        self.cfg.set_network(NETWORK_MODES[idx])
        return f'Network set: {self.cfg.network_label}'

    def do_kvm(self) -> str:
        self.cfg.kvm_requested = _confirm('💻 Use KVM? [Y/n]: ', default=True)
        return f'KVM acceleration: {"yes" if self.cfg.kvm_requested else "no"}'

    def do_binary(self) -> str:
        found = qemu_binaries()
        if not found:
            raise QLaunchError('No qemu-system-* binaries found in PATH!')
        choice = _pick_file(found, prompt='QEMU ▶ ')
        if not choice:
            return ''
        self.cfg.binary_name = choice
        return f'Selected: {choice}'

    # -- usb ----------------------------------------------------------------

    def do_usb(self) -> str:
        devices = list_usb_devices()
        if not devices:
            raise QLaunchError('No USB devices found!')
        selected: list[USBDeviceRef] = []
        labels = [d.display_name for d in devices]
        while True:
            idx = _choose(labels, title='Select USB devices (Back when done):')
            if idx is None:
                break
            selected.append(devices[idx])
            print(f'✅ Selected: {devices[idx].description}')
        self.apply_usb(selected)
        return f'USB: {self.cfg.usb_info}'

    def apply_usb(self, selected: list[USBDeviceRef]) -> None:
        self.usb = resolve_usb(selected, lookup=self._storage_lookup)
        self.cfg.usb_selections = list(selected)
        self.cfg.usb_info = self.usb.description

    # -- snapshots ----------------------------------------------------------

    def _pick_snapshot(self) -> str | None:
        tags = self.snapshots.list(self.cfg)
        if not tags:
            # Let the manager raise its precondition error.
            return ''
        idx = _choose(tags, title='Existing snapshots:')
        return None if idx is None else tags[idx]

    def do_snapshots(self) -> str:
        disk = self.snapshots.target_disk(self.cfg)
        while True:
            print(f'🗂 Snapshot management for disk: {disk}')
            print(RULE)
            print('1. 📸 Create snapshot')
            print('2. 🗑 Delete snapshot')
            print('3. 🔄 Load from snapshot')
            print('4. 🌳 View snapshot tree')
            print('5. ⬅️  Back')
            choice = _ask('Select action: ')
            try:
                if choice == '1':
                    name = self.snapshots.create(self.cfg, _ask('Snapshot name: '))
                    print(f"✅ Snapshot '{name}' created!")
                elif choice == '2':
                    tag = self._pick_snapshot()
                    if tag is not None:
                        self.snapshots.delete(self.cfg, tag)
                        print(f"✅ Snapshot '{tag}' deleted!")
                elif choice == '3':
                    tag = self._pick_snapshot()
                    if tag is not None:
                        self.snapshots.select_for_load(self.cfg, tag)
                        print(f"✅ Snapshot '{tag}' will be loaded on next run.")
                elif choice == '4':
                    print(self.snapshots.tree(self.cfg))
                    _ask('Press Enter to continue...')
                elif choice == '5':
                    return ''
                else:
                    print('❌ Invalid choice!')
            except (QLaunchError, CmdError) as ex:
                print(f'❌ {ex}')

    # -- profiles -----------------------------------------------------------

    def do_profiles(self) -> str:
        print('1. Load profile\n2. Save current as profile\n3. Back')
        choice = _ask('Select action: ')
        if choice == '1':
            names = profile_names(self.profiles_path)
            if not names:
                # Reuse the store's error for missing file / empty store.
                load_profile('', self.profiles_path)
            idx = _choose(names, title='Available profiles:')
            if idx is None:
                return ''
            return self.load(names[idx])
        if choice == '2':
            name = _ask('Profile name: ')
            save_profile(self.cfg, name, self.profiles_path)
            self.profile = name.strip()
            return f"Profile '{self.profile}' saved!"
        return ''

    def load(self, name: str) -> str:
        self.cfg = load_profile(name, self.profiles_path)
        self.profile = name
        if self.cfg.usb_selections:
            self.usb = resolve_usb(
                self.cfg.usb_selections, lookup=self._storage_lookup
            )
        else:
            self.usb = UsbResolution()
        return f"Profile '{name}' loaded!"

    # -- launch -------------------------------------------------------------

    def compile(self) -> Invocation:
        return compile_invocation(
            self.cfg,
            self.usb,
            ovmf_path=self.settings.ovmf_path,
            default_binary=self.settings.default_binary,
        )

    def do_start(self) -> int | None:
        print('🚀 Preparing to launch...')
        inv = self.compile()
        for warning in inv.warnings:
            print(f'⚠  {warning}')
        if inv.discarded_snapshot:
            print(
                f"⚠  Snapshot '{inv.discarded_snapshot}' was not applied: "
                'no disks in the disk set.'
            )
        cmd = inv.command(sudo=self.settings.use_sudo)
        print('🔧 Launch command:')
        print(inv.shell(sudo=self.settings.use_sudo))
        print()
        if not _confirm('▶ Start VM? [Y/n]: ', default=True):
            print('VM launch cancelled.')
            return None
        print('Launching QEMU VM...')
        return self.launcher(cmd)

    # -- dispatch -----------------------------------------------------------

    def handlers(self) -> dict[str, Callable[[], object]]:
        return {
            '1': self.do_main_disk,
            '2': self.do_advanced_disks,
            '3': self.do_iso,
            '4': self.do_ram,
            '5': self.do_cores,
            '6': self.do_firmware,
            '7': self.do_network,
            '8': self.do_kvm,
            '9': self.do_usb,
            'a': self.do_binary,
            's': self.do_snapshots,
            'p': self.do_profiles,
        }

    def run(self) -> int:
        try:
            return self._loop()
        except EOFError:
            # end of input at any prompt quits like Q
            print()
            print('👋 Exiting QEMU Launcher')
            return 0

    def _loop(self) -> int:
        handlers = self.handlers()
        while True:
            print()
            print(render_settings(self.cfg, profile=self.profile, settings=self.settings))
            choice = _ask('➤ Select item (0-9, A, S, P, Q): ').lower()
            if choice == 'q':
                print('👋 Exiting QEMU Launcher')
                return 0
            try:
                if choice == '0':
                    rc = self.do_start()
                    if rc is None:
                        continue
                    if rc != 0:
                        print(f'❌ Failed to launch VM (code={rc})')
                    return rc
                handler = handlers.get(choice)
                if handler is None:
                    print('⚠ Invalid choice!')
                    continue
                msg = handler()
                if msg:
                    print(f'✅ {msg}')
            except (QLaunchError, CmdError) as ex:
                log.debug('Menu operation {!r} failed: {}', choice, ex)
                print(f'❌ {ex}')


class MenuCLI(_BaseCommand):
    """Interactively assemble a VM configuration and launch it."""

    profile = scfg.Value('', help='Profile to load before showing the menu.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        session = Session(settings=_load_settings(args))
        if args.profile:
            print(session.load(str(args.profile)))
        return session.run()
