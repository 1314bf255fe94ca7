"""Interactive QEMU launcher: build a VM configuration and compile its command line."""

__version__ = '0.1.0'
