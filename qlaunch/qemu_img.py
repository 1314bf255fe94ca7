"""Wrappers around the external qemu-img tool and parsers for its text output."""

from __future__ import annotations

from loguru import logger

from .errors import ExternalToolFailure
from .util import CmdError, run_cmd

log = logger

QEMU_IMG = 'qemu-img'

# ``qemu-img snapshot -l`` prints a title line and a column header line
# before one row per snapshot: ID TAG VM-SIZE DATE VM-CLOCK ...
SNAPSHOT_LIST_HEADER_LINES = 2
SNAPSHOT_TAG_COLUMN = 1


def parse_snapshot_list(text: str) -> list[str]:
    """
    Extract snapshot tags from ``qemu-img snapshot -l`` output.

    Example:
        >>> text = (
        ...     'Snapshot list:\\n'
        ...     'ID        TAG               VM SIZE                DATE     VM CLOCK     ICOUNT\\n'
        ...     '1         clean                 0 B 2024-05-01 10:00:00 00:00:00.000          0\\n'
        ...     '2         after-update          0 B 2024-05-02 11:00:00 00:00:00.000          0\\n'
        ... )
        >>> parse_snapshot_list(text)
        ['clean', 'after-update']
    """
    tags: list[str] = []
    lines = text.splitlines()[SNAPSHOT_LIST_HEADER_LINES:]
    for line in lines:
        parts = line.split()
        if len(parts) > SNAPSHOT_TAG_COLUMN:
            tags.append(parts[SNAPSHOT_TAG_COLUMN])
    return tags


def parse_info_format(text: str) -> str | None:
    for line in text.splitlines():
        key, sep, val = line.partition(':')
        if sep and key.strip() == 'file format':
            return val.strip() or None
    return None


def image_format(path: str) -> str | None:
    """Return the on-disk format reported by ``qemu-img info``, if any."""
    res = run_cmd([QEMU_IMG, 'info', path], check=False, capture=True)
    if res.code != 0:
        log.warning(
            'qemu-img info failed for {}: {}', path, res.stderr.strip()
        )
        return None
    return parse_info_format(res.stdout)


def snapshot_list_text(path: str) -> str:
    try:
        return run_cmd(
            [QEMU_IMG, 'snapshot', '-l', path], check=True, capture=True
        ).stdout
    except CmdError as ex:
        raise ExternalToolFailure(
            f'Could not list snapshots of {path}', ex.cmd, ex.result
        ) from ex


def snapshot_list(path: str) -> list[str]:
    return parse_snapshot_list(snapshot_list_text(path))


def snapshot_create(path: str, name: str) -> None:
    try:
        run_cmd([QEMU_IMG, 'snapshot', '-c', name, path], check=True)
    except CmdError as ex:
        raise ExternalToolFailure(
            f'Snapshot creation error for {name!r}', ex.cmd, ex.result
        ) from ex


def snapshot_delete(path: str, tag: str) -> None:
    try:
        run_cmd([QEMU_IMG, 'snapshot', '-d', tag, path], check=True)
    except CmdError as ex:
        raise ExternalToolFailure(
            f'Snapshot deletion error for {tag!r}', ex.cmd, ex.result
        ) from ex


def create_image(path: str, size: str, *, fmt: str = 'qcow2') -> None:
    log.info('Running: qemu-img create -f {} {} {}', fmt, path, size)
    try:
        run_cmd([QEMU_IMG, 'create', '-f', fmt, path, size], check=True)
    except CmdError as ex:
        raise ExternalToolFailure(
            f'Could not create disk image {path}', ex.cmd, ex.result
        ) from ex


class QemuImg:
    """
    The snapshot data source used by :class:`qlaunch.snapshots.SnapshotManager`.

    Tests substitute an object providing the same methods.
    """

    def image_format(self, path: str) -> str | None:
        return image_format(path)

    def snapshot_list(self, path: str) -> list[str]:
        return snapshot_list(path)

    def snapshot_list_text(self, path: str) -> str:
        return snapshot_list_text(path)

    def snapshot_create(self, path: str, name: str) -> None:
        snapshot_create(path, name)

    def snapshot_delete(self, path: str, tag: str) -> None:
        snapshot_delete(path, tag)
