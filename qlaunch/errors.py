"""Project-specific exception and warning types."""

from __future__ import annotations

from typing import Sequence


class QLaunchError(RuntimeError):
    """Base error for domain-level qemu-launch failures."""


class ValidationError(QLaunchError):
    """Raised when a required value is empty or not one of the allowed choices."""


class PreconditionError(QLaunchError):
    """Raised when an operation needs state that does not exist yet."""


class UnsupportedOperationError(PreconditionError):
    """Raised when snapshot operations target a disk that is not qcow2."""


class ExternalToolFailure(QLaunchError):
    """Raised when an external primitive such as qemu-img reports failure."""

    def __init__(self, message: str, cmd: Sequence[str] | str = (), result=None):
        self.cmd = cmd
        self.result = result
        detail = ''
        if result is not None:
            detail = (result.stderr or result.stdout or '').strip()
        super().__init__(f'{message}\n{detail}'.strip())


class MissingResourceWarning(UserWarning):
    """A referenced host resource (e.g. firmware image) is absent."""
