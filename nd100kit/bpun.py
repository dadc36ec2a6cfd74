"""Loader for the BPUN binary paper-tape format, including FloMon boot sectors."""

import logging
from dataclasses import dataclass
from enum import Enum, auto

_logger = logging.getLogger(__name__)

_MAX_DIGITS = 50


class BpunError(ValueError):
    """Raised when a BPUN stream is truncated or malformed."""


@dataclass
class BpunHeader:
    """Header fields of a BPUN image, plus the checksum computed while loading."""

    start: int = 0
    boot: int = 0
    address: int = 0
    checksum: int = 0
    calculated_checksum: int = 0
    action: int = 0
    count: int = 0
    is_flomon: bool = False

    @property
    def checksum_ok(self):
        return self.checksum == self.calculated_checksum


class _State(Enum):
    PREAMBLE = auto()
    ADDRESS = auto()
    COUNT = auto()
    DATA = auto()
    CHECKSUM = auto()
    ACTION = auto()
    FLOMON_COUNT = auto()
    FLOMON_LOAD = auto()


def _next_byte(data):
    value = next(data, None)
    if value is None:
        raise BpunError("unexpected end of BPUN data")
    return value


def _word(high, data):
    return ((high << 8) | _next_byte(data)) & 0xFFFF


def load_bpun_stream(stream, write_word):
    """Parse a BPUN image from a binary stream.

    Every data word is passed to ``write_word(address, value)``.
    Returns the parsed :class:`BpunHeader`; raises :class:`BpunError`
    if the data is truncated or malformed.
    """
    header = BpunHeader()
    if stream.seekable():
        stream.seek(0)
    data = iter(stream.read())

    state = _State.PREAMBLE
    digits = ""
    load_address = 0
    last_value = 0
    data_counter = 0
    data_address = 0

    for b in data:
        if state is _State.PREAMBLE:
            c = chr(b & 0x7F)
            if c == "!":
                if digits:
                    load_address = int(digits) & 0xFFFF
                header.boot = last_value if load_address == header.start else load_address
                state = _State.ADDRESS
                digits = ""
            elif c == "/":
                if digits:
                    value = int(digits) & 0xFFFF
                    last_value = value
                    header.start = value
                    if load_address == 0:
                        load_address = value
                digits = ""
            elif "0" <= c <= "9":
                if len(digits) < _MAX_DIGITS:
                    digits += c
            elif c == "\r":
                if digits:
                    last_value = int(digits) & 0xFFFF
                    digits = ""

        elif state is _State.ADDRESS:
            header.address = _word(b, data)
            data_address = header.address
            state = _State.COUNT

        elif state is _State.COUNT:
            header.count = _word(b, data)
            data_counter = (header.count * 2) & 0xFFFF
            state = _State.DATA

        elif state is _State.DATA:
            data_word = 0
            if data_counter > 0:
                data_counter -= 1
                data_word = (b << 8) & 0xFF00
            if data_counter > 0:
                data_counter -= 1
                data_word |= _next_byte(data) & 0xFF

            _logger.debug("Writing %06o to %06o", data_word, data_address)
            write_word(data_address, data_word)
            data_address = (data_address + 1) & 0xFFFF

            if data_counter == 0:
                state = _State.CHECKSUM
            header.calculated_checksum = (header.calculated_checksum + data_word) & 0xFFFF

        elif state is _State.CHECKSUM:
            header.checksum = _word(b, data)
            state = _State.ACTION
            if header.address == 0 and header.count == 0 and header.checksum == 0:
                state = _State.FLOMON_COUNT

        elif state is _State.ACTION:
            header.action = _word(b, data)
            return header

        elif state is _State.FLOMON_COUNT:
            header.is_flomon = True
            header.count = b
            state = _State.FLOMON_LOAD

        elif state is _State.FLOMON_LOAD:
            for offset in range(header.count):
                if b != 0:
                    raise BpunError("malformed FloMon word separator")
                high = _next_byte(data)
                if _next_byte(data) != 0:
                    raise BpunError("malformed FloMon word separator")
                low = _next_byte(data)
                b = _next_byte(data)
                if b != 0:
                    raise BpunError("malformed FloMon word separator")
                write_word(header.address + offset, ((high << 8) | low) & 0xFFFF)
            return header

    raise BpunError("unexpected end of BPUN data")


def _print_summary(header):
    print("BPUN load OK")
    print("--- Bootstrapper ---")
    print(f"Start: {header.start:06o}")
    print(f"Boot: {header.boot:06o}")
    print("--- Data ---")
    print(f"Address: {header.address:06o}")
    print(f"Count: {header.count:06o}")
    crc = "[OK]"
    if not header.checksum_ok:
        print(f"CRC ERROR != {header.calculated_checksum:02X}")
        crc = "[CRC ERROR]"
    print(f"Checksum: {header.checksum:06o} {crc}")
    print(f"Action: {header.action:06o}")
    print(f"FloMon: {int(header.is_flomon)}")


def load_bpun(filename, write_word, verbose=False):
    """Load a BPUN file, writing its words through ``write_word``.

    Returns the boot address. Raises ``OSError`` if the file cannot be
    opened and :class:`BpunError` if its contents cannot be parsed.
    """
    with open(filename, "rb") as stream:
        header = load_bpun_stream(stream, write_word)
    if verbose:
        _print_summary(header)
    return header.boot