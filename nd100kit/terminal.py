"""Serial terminal interface answering IOX reads and writes."""

from collections import deque
from dataclasses import dataclass

TERMINAL_QUEUE_SIZE = 256
MAX_TICKS = 100

INPUT_LEVEL = 12
OUTPUT_LEVEL = 10

# register offsets relative to the device's base address
_READ_INPUT_DATA = 0
_WRITE_NO_OPERATION = 1
_READ_INPUT_STATUS = 2
_WRITE_INPUT_CONTROL = 3
_READ_RETURN0 = 4
_WRITE_DATA = 5
_READ_OUTPUT_STATUS = 6
_WRITE_SET_OUTPUT_CONTROL = 7


@dataclass(frozen=True)
class DeviceDefinition:
    """Address, ident code and logical device number of one terminal slot."""

    address_base: int
    ident_code: int
    logical_device: int
    device_name: str


_DEFINITIONS = (
    DeviceDefinition(0o300, 0o1, 0o1, "CONSOLE TERMINAL - TERMINAL 1"),
    DeviceDefinition(0o310, 0o5, 0o11, "TERMINAL 2/ TET15"),
    DeviceDefinition(0o320, 0o6, 0o42, "TERMINAL 3/ TET14"),
    DeviceDefinition(0o330, 0o7, 0o43, "TERMINAL 4/ TET15"),
    DeviceDefinition(0o340, 0o44, 0o44, "TERMINAL 5/ TET12"),
    DeviceDefinition(0o350, 0o45, 0o45, "TERMINAL 6/ TET11"),
    DeviceDefinition(0o360, 0o46, 0o46, "TERMINAL 7/ TET10"),
    DeviceDefinition(0o370, 0o47, 0o47, "TERMINAL 8/ TET9"),
    DeviceDefinition(0o1300, 0o50, 0o60, "TERMINAL 9"),
    DeviceDefinition(0o1310, 0o51, 0o61, "TERMINAL 10"),
    DeviceDefinition(0o1320, 0o52, 0o62, "TERMINAL 11"),
    DeviceDefinition(0o1330, 0o53, 0o63, "TERMINAL 12"),
    DeviceDefinition(0o1340, 0o54, 0o64, "TERMINAL 13"),
    DeviceDefinition(0o1350, 0o55, 0o65, "TERMINAL 14"),
    DeviceDefinition(0o1360, 0o56, 0o66, "TERMINAL 15"),
    DeviceDefinition(0o1370, 0o57, 0o67, "TERMINAL 16"),
    DeviceDefinition(0o200, 0o60, 0o7, "TERMINAL 17"),
    DeviceDefinition(0o210, 0o61, 0o17, "TERMINAL 18"),
    DeviceDefinition(0o220, 0o62, 0o52, "TERMINAL 19"),
    DeviceDefinition(0o230, 0o63, 0o53, "TERMINAL 20"),
    DeviceDefinition(0o240, 0o64, 0o54, "TERMINAL 21"),
    DeviceDefinition(0o250, 0o65, 0o55, "TERMINAL 22"),
    DeviceDefinition(0o260, 0o66, 0o56, "TERMINAL 23"),
    DeviceDefinition(0o270, 0o67, 0o57, "TERMINAL 24"),
    DeviceDefinition(0o1200, 0o70, 0o70, "TERMINAL 25"),
    DeviceDefinition(0o1210, 0o71, 0o71, "TERMINAL 26"),
    DeviceDefinition(0o1220, 0o72, 0o72, "TERMINAL 27"),
    DeviceDefinition(0o1230, 0o73, 0o73, "TERMINAL 28"),
    DeviceDefinition(0o1240, 0o74, 0o74, "TERMINAL 29/PHOTOS.1"),
    DeviceDefinition(0o1250, 0o75, 0o75, "TERMINAL 30/PHOTOS.2"),
    DeviceDefinition(0o1260, 0o76, 0o76, "TERMINAL 31/PHOTOS.3"),
    DeviceDefinition(0o1270, 0o77, 0o77, "TERMINAL 32/PHOTOS.4"),
    DeviceDefinition(0o640, 0o124, 0o1040, "TERMINAL 33"),
    DeviceDefinition(0o650, 0o125, 0o1041, "TERMINAL 34"),
    DeviceDefinition(0o660, 0o126, 0o1042, "TERMINAL 35"),
    DeviceDefinition(0o670, 0o127, 0o1043, "TERMINAL 36"),
    DeviceDefinition(0o1100, 0o130, 0o1044, "TERMINAL 37"),
    DeviceDefinition(0o1110, 0o131, 0o1045, "TERMINAL 38"),
    DeviceDefinition(0o1120, 0o132, 0o1046, "TERMINAL 39"),
    DeviceDefinition(0o1130, 0o133, 0o1047, "TERMINAL 40"),
    DeviceDefinition(0o1140, 0o134, 0o1050, "TERMINAL 41"),
    DeviceDefinition(0o1150, 0o135, 0o1051, "TERMINAL 42"),
    DeviceDefinition(0o1160, 0o136, 0o1052, "TERMINAL 43"),
    DeviceDefinition(0o1170, 0o137, 0o1053, "TERMINAL 44"),
    DeviceDefinition(0o1400, 0o140, 0o1054, "TERMINAL 45"),
    DeviceDefinition(0o1410, 0o141, 0o1055, "TERMINAL 46"),
    DeviceDefinition(0o1420, 0o142, 0o1056, "TERMINAL 47"),
    DeviceDefinition(0o1430, 0o143, 0o1057, "TERMINAL 48"),
    DeviceDefinition(0o1500, 0o144, 0o1060, "TERMINAL 49"),
    DeviceDefinition(0o1510, 0o145, 0o1061, "TERMINAL 50"),
    DeviceDefinition(0o1520, 0o146, 0o1062, "TERMINAL 51"),
    DeviceDefinition(0o1530, 0o147, 0o1063, "TERMINAL 52"),
)


def device_definition(thumbwheel):
    """Return the definition selected by ``thumbwheel``.

    Thumbwheels 0 and 1 both select the console. Raises ``ValueError``
    for a thumbwheel outside the table.
    """
    if not 0 <= thumbwheel < len(_DEFINITIONS):
        raise ValueError(f"Unexpected thumbwheel code {thumbwheel}")
    return _DEFINITIONS[max(thumbwheel - 1, 0)]


def _odd_parity(value):
    """Return 1 if ``value`` has an odd number of set bits."""
    return bin(value).count("1") & 1


class _Bits:
    def __init__(self, shift, width=1):
        self.shift = shift
        self.mask = (1 << width) - 1

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return (obj.raw >> self.shift) & self.mask

    def __set__(self, obj, value):
        obj.raw = (obj.raw & ~(self.mask << self.shift)) | ((int(value) & self.mask) << self.shift)


class _Register:
    def __init__(self, raw=0):
        self.raw = raw & 0xFFFF


class _InputStatus(_Register):
    interrupt_enabled = _Bits(0)
    device_activated = _Bits(2)
    ready_for_transfer = _Bits(3)
    framing_error = _Bits(5)
    parity_error = _Bits(6)
    overrun_error = _Bits(7)


class _InputControl(_Register):
    interrupt_enabled = _Bits(0)
    device_activated = _Bits(2)
    test_mode = _Bits(3)
    device_clear = _Bits(4)
    character_length = _Bits(11, 2)
    stop_bits = _Bits(13)
    parity_generation = _Bits(14)


class _OutputStatus(_Register):
    interrupt_enabled = _Bits(0)
    ready_for_transfer = _Bits(3)


class _OutputControl(_Register):
    interrupt_enabled = _Bits(0)


class TerminalDevice:
    """A terminal interface with an input queue and a character output.

    ``output`` is called with each character written by the machine; when
    it is None the character is printed. Output completion is reported
    ``io_delay_ticks`` calls of :meth:`tick` after a character is written.
    """

    def __init__(self, thumbwheel=1, output=None, io_delay_ticks=10):
        definition = device_definition(thumbwheel)
        self.name = definition.device_name
        self.ident_code = definition.ident_code
        self.start_address = definition.address_base
        self.end_address = definition.address_base + 7
        self.logical_device = definition.logical_device
        self.interrupt_level = OUTPUT_LEVEL
        self.interrupt_bits = 0
        self.output = output
        self.io_delay_ticks = io_delay_ticks

        self.uart_input_buf = 0
        self.check_input_queue_tick = 0
        self.input_queue = deque()
        self._pending = []

        self.input_status = _InputStatus()
        self.input_control = _InputControl()
        self.output_status = _OutputStatus()
        self.output_control = _OutputControl()
        self.output_status.ready_for_transfer = 1

    def _set_interrupt(self, active, level):
        if active:
            self.interrupt_bits |= 1 << level
        else:
            self.interrupt_bits &= ~(1 << level)

    def _update_input_interrupt(self):
        self._set_interrupt(
            bool(self.input_status.interrupt_enabled and self.input_status.ready_for_transfer),
            INPUT_LEVEL,
        )

    def _update_output_interrupt(self):
        self._set_interrupt(
            bool(self.output_status.interrupt_enabled and self.output_status.ready_for_transfer),
            OUTPUT_LEVEL,
        )

    def reset(self):
        """Clear the status registers and activate the device."""
        self.input_status.raw = 0
        self.input_status.device_activated = 1
        self.input_status.ready_for_transfer = 0
        self.output_status.raw = 0
        self.output_status.ready_for_transfer = 1

    def _write_end(self):
        self.output_status.ready_for_transfer = 1
        self.check_input_queue_tick = 0
        self._update_output_interrupt()

    def _shape_character(self, value):
        length = self.input_control.character_length
        if length == 0:
            value &= 0xFF
            if _odd_parity(value):
                value |= 1 << 7
        elif length == 1:
            value &= 0x7F
            if self.input_control.parity_generation and _odd_parity(value):
                value |= 1 << 7
        elif length == 2:
            value &= 0x3F
        else:
            value &= 0x1F
        return value

    def tick(self):
        """Advance pending output and deliver queued input; return the interrupt bits."""
        still_pending = []
        for countdown in self._pending:
            countdown -= 1
            if countdown <= 0:
                self._write_end()
            else:
                still_pending.append(countdown)
        self._pending = still_pending

        self.check_input_queue_tick += 1
        if self.check_input_queue_tick > MAX_TICKS:
            self.check_input_queue_tick = 0
            if (
                self.input_queue
                and not self.input_status.ready_for_transfer
                and self.output_status.ready_for_transfer
            ):
                self.uart_input_buf = self._shape_character(self.input_queue.popleft())
                self.input_status.ready_for_transfer = 1
                self._update_input_interrupt()
        return self.interrupt_bits

    def read(self, address):
        """Return the value of the register at IOX ``address``."""
        reg = address - self.start_address
        if reg == _READ_INPUT_DATA:
            value = self.uart_input_buf
            self.uart_input_buf = 0
            self.input_status.ready_for_transfer = 0
            self._update_input_interrupt()
            return value
        if reg == _READ_INPUT_STATUS:
            return self.input_status.raw
        if reg == _READ_OUTPUT_STATUS:
            return self.output_status.raw
        return 0

    def write(self, address, value):
        """Write ``value`` to the register at IOX ``address``."""
        reg = address - self.start_address
        value &= 0xFFFF

        if reg == _WRITE_INPUT_CONTROL:
            self.input_control.raw = value
            self.input_status.interrupt_enabled = self.input_control.interrupt_enabled
            self.input_status.device_activated = self.input_control.device_activated
            self._update_input_interrupt()
            if self.input_control.device_clear:
                self.input_status.raw = 0
                self.input_status.device_activated = 1
                self.output_status.raw = 0
                self.output_status.ready_for_transfer = 1
            self.input_status.framing_error = 0
            self.input_status.parity_error = 0
            self.input_status.overrun_error = 0

        elif reg == _WRITE_DATA:
            if value == 0:
                return
            c = value & 0x7F
            self.output_status.ready_for_transfer = 0
            self._update_output_interrupt()
            if self.input_control.test_mode:
                self.queue_key_code(c)
            elif self.output is not None:
                self.output(chr(c))
            else:
                print(chr(c), end="", flush=True)
            self._pending.append(self.io_delay_ticks)

        elif reg == _WRITE_SET_OUTPUT_CONTROL:
            self.output_control.raw = value
            self.output_status.interrupt_enabled = self.output_control.interrupt_enabled
            self._update_output_interrupt()

    def ident(self, level):
        """Answer an IDENT on ``level``: the ident code if interrupting, else 0."""
        if self.interrupt_bits & (1 << level):
            if level == INPUT_LEVEL:
                self.input_status.interrupt_enabled = 0
            elif level == OUTPUT_LEVEL:
                self.output_status.interrupt_enabled = 0
            self._set_interrupt(False, level)
            return self.ident_code
        return 0

    def queue_key_code(self, keycode):
        """Queue a key for input; sets the overrun bit if the queue is full."""
        if isinstance(keycode, str):
            keycode = ord(keycode)
        if len(self.input_queue) >= TERMINAL_QUEUE_SIZE:
            self.input_status.overrun_error = 1
            return
        self.input_queue.append(keycode & 0xFF)