from __future__ import annotations

import sys

from ..host import check_commands, kvm_supported, qemu_binaries
from ._common import _BaseCommand, _load_settings


class DoctorCLI(_BaseCommand):
    """Check host prerequisites and list missing required tools."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        settings = _load_settings(args)
        missing, missing_opt = check_commands()
        if missing:
            print('❌ Missing required commands:', ', '.join(missing))
            return 2
        if missing_opt:
            print('➖ Missing optional commands:', ', '.join(missing_opt))
        print('✅ Required host commands are present.')
        binaries = qemu_binaries()
        if binaries:
            print('🧩 QEMU binaries:', ', '.join(binaries))
        else:
            print('➖ No qemu-system-* binaries found in PATH.', file=sys.stderr)
        kvm = 'yes' if kvm_supported() else 'no'
        print(f'💻 Hardware virtualization (vmx/svm): {kvm}')
        print(f'📁 Profiles file: {settings.resolved_profiles_file()}')
        return 0
