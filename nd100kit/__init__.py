"""ND-100 emulator components: BPUN loader, SMD disk controller, terminal device and options."""

__version__ = "0.1.0"

__all__ = [
    "bpun",
    "config",
    "disk",
    "log",
    "smd_controller",
    "smd_registers",
    "smd_transfer",
    "terminal",
]