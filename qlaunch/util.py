"""Shared utility helpers for subprocess execution, paths, and command formatting."""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

log = logger


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str


class CmdError(RuntimeError):
    def __init__(self, cmd: Sequence[str] | str, result: CmdResult):
        self.cmd = cmd
        self.result = result
        super().__init__(
            f'Command failed (code={result.code}): {cmd}\n{result.stderr}'.strip()
        )


def shell_join(cmd: Sequence[str]) -> str:
    return ' '.join(shlex.quote(c) for c in cmd)


def run_cmd(
    cmd: Sequence[str],
    *,
    sudo: bool = False,
    check: bool = True,
    capture: bool = True,
    input_text: Optional[str] = None,
) -> CmdResult:
    """
    Run a host tool and collect its output as text.

    A program that is not installed yields code 127 instead of an OSError.
    """
    if sudo and os.geteuid() != 0:
        # -n: never wait on a password prompt
        cmd = ['sudo', '-n', *cmd]
    log.opt(depth=1).debug('RUN: {}', shell_join(cmd))
    try:
        p = subprocess.run(
            cmd,
            input=input_text,
            capture_output=capture,
            text=True,
        )
    except FileNotFoundError as ex:
        res = CmdResult(127, '', str(ex))
        if check:
            log.opt(depth=1).error('Command not found: {}', cmd[0])
            raise CmdError(cmd, res) from ex
        return res
    res = CmdResult(p.returncode, p.stdout or '', p.stderr or '')
    if check and p.returncode != 0:
        log.opt(depth=1).error(
            'Command failed code={} cmd={} stderr={} stdout={}',
            p.returncode,
            shell_join(cmd),
            res.stderr.strip(),
            res.stdout.strip(),
        )
        raise CmdError(cmd, res)
    if p.returncode == 0:
        log.opt(depth=1).debug('Command ok code=0 cmd={}', shell_join(cmd))
    return res


def exec_replace(cmd: Sequence[str]) -> int:
    """
    Replace the current process with ``cmd``.

    Only returns when the program could not be started, in which case the
    return value is a shell-style exit status (127).
    """
    log.info('EXEC: {}', shell_join(cmd))
    # exec discards unflushed buffers
    sys.stdout.flush()
    sys.stderr.flush()
    try:
        os.execvp(cmd[0], list(cmd))
    except OSError as ex:
        log.error('Failed to start {}: {}', cmd[0], ex)
        return 127
    return 0  # pragma: no cover


def which(cmd: str) -> Optional[str]:
    return shutil.which(cmd)


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))
