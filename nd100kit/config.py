"""Command-line configuration of the emulator front end."""

import getopt
import re
import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class BootType(IntEnum):
    """How the emulator loads its initial program."""

    NONE = 0
    BPUN = 1
    AOUT = 2
    BP = 3
    FLOPPY = 4
    SMD = 5

    def __str__(self):
        return self.name.lower()


class ConfigError(ValueError):
    """Raised when the command line cannot be accepted."""


@dataclass
class Config:
    """Settings collected from the command line."""

    boot_type: BootType = BootType.NONE
    image_file: Optional[str] = None
    start_address: int = 0
    disasm_enabled: bool = False
    verbose: bool = False
    show_help: bool = False
    debugger_enabled: bool = False
    debugger_port: int = 4711


_BOOT_NAMES = {
    "bp": BootType.BP,
    "bpun": BootType.BPUN,
    "aout": BootType.AOUT,
    "floppy": BootType.FLOPPY,
    "smd": BootType.SMD,
}

_SHORT_OPTIONS = "b:i:s:avhdp:"
_LONG_OPTIONS = ["boot=", "image=", "start=", "disasm", "verbose", "help", "debugger", "port"]

_NUMBER = re.compile(
    r"\s*(?P<sign>[+-]?)(?:(?P<hex>0[xX][0-9a-fA-F]+)|(?P<oct>0[0-7]*)|(?P<dec>[1-9][0-9]*))"
)


def _parse_address(text):
    """Parse an unsigned number the way C's strtoul does with base 0."""
    match = _NUMBER.match(text)
    if match is None:
        if text:
            raise ConfigError(f"Invalid start address: {text}")
        return 0
    if match.end() != len(text):
        raise ConfigError(f"Invalid start address: {text}")
    if match.group("hex"):
        value = int(match.group("hex"), 16)
    elif match.group("oct") is not None:
        value = int(match.group("oct"), 8)
    else:
        value = int(match.group("dec"), 10)
    if match.group("sign") == "-":
        value = -value
    return value & 0xFFFFFFFF


def _print_summary(config):
    print("Configuration:")
    print(f"  Boot type: {config.boot_type}")
    print(f"  Image file: {config.image_file}")
    print(f"  Start address: 0x{config.start_address:x}")
    print(f"  Disassembly: {'enabled' if config.disasm_enabled else 'disabled'}")


def parse_command_line(argv=None):
    """Build a :class:`Config` from the arguments (without the program name).

    Raises :class:`ConfigError` when an option is unknown or invalid, or
    when a required setting is missing.
    """
    if argv is None:
        argv = sys.argv[1:]
    config = Config()
    try:
        options, _ = getopt.gnu_getopt(list(argv), _SHORT_OPTIONS, _LONG_OPTIONS)
    except getopt.GetoptError as exc:
        raise ConfigError(str(exc)) from exc

    for option, value in options:
        if option in ("-b", "--boot"):
            boot_type = _BOOT_NAMES.get(value, BootType.NONE)
            if boot_type is BootType.NONE:
                raise ConfigError(f"Invalid boot type: {value}")
            config.boot_type = boot_type
        elif option in ("-i", "--image"):
            config.image_file = value
        elif option in ("-s", "--start"):
            config.start_address = _parse_address(value)
        elif option in ("-a", "--disasm"):
            config.disasm_enabled = True
        elif option in ("-d", "--debugger"):
            config.debugger_enabled = True
        elif option in ("-v", "--verbose"):
            config.verbose = True
        elif option in ("-h", "--help"):
            config.show_help = True
            return config
        else:
            raise ConfigError(f"Unknown option: {option.lstrip('-')[:1]}")

    if not config.show_help and not config.debugger_enabled:
        if config.boot_type is BootType.NONE:
            raise ConfigError("Boot type must be specified")
        if config.image_file is None:
            if config.boot_type is BootType.FLOPPY:
                config.image_file = "FLOPPY.IMG"
            elif config.boot_type is not BootType.SMD:
                raise ConfigError("Image file must be specified")

    if config.verbose:
        _print_summary(config)
    return config


def format_help(prog_name):
    """Return the usage text for the command."""
    return "\n".join(
        [
            f"Usage: {prog_name} [options]",
            "",
            "Options:",
            "  -b,      --boot=TYPE    Boot type (bp, bpun, aout, floppy, smd)",
            "  -i,      --image=FILE   Image file to load",
            "  -s,      --start=ADDR   Start address (default: 0)",
            "  -a,      --disasm       Enable disassembly output",
            "  -d,      --debugger     Enable DAP debugger",
            "  -p=PORT, --port=PORT    Set debugger port (default: 4711)",
            "  -v,      --verbose      Enable verbose output",
            "  -h,      --help         Show this help message",
            "",
            "Examples:",
            f"  {prog_name} --boot=bpun --image=test.bpun",
            f"  {prog_name} --boot=floppy --image=disk.img --start=0x1000 --disasm",
            f"  {prog_name} --debugger",
            "",
        ]
    )