"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import QLaunchModalCLI, main

__all__ = ['QLaunchModalCLI', 'main']
