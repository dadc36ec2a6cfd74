"""Register layouts and codes of the SMD disk controller."""

from enum import IntEnum


class ControllerType(IntEnum):
    """Generations of the SMD disk controller."""

    BIG_DISC = 0
    ECC_DISC = 1
    SMD_10MHZ = 2
    SMD_15MHZ = 3

    @property
    def has_flip_flops(self):
        """True for controllers that load wide registers in two steps."""
        return self in (ControllerType.SMD_10MHZ, ControllerType.SMD_15MHZ)


class DiskError(IntEnum):
    """Error conditions the controller can report."""

    NO_DISK_ATTACHED = 0
    ADDRESS_MISMATCH = 1
    SEEK_ERROR = 2
    READ_ERROR = 3
    COMPARER_ERROR = 4
    DRIVE_NOT_SELECTED = 5
    ILLEGAL_WHILE_ACTIVE = 6
    WRITE_PROTECT_ERROR = 7


class DeviceOperation(IntEnum):
    """Device operation codes M0-M9 from control word bits 11-14."""

    READ_TRANSFER = 0
    WRITE_TRANSFER = 1
    READ_PARITY = 2
    COMPARE_TRANSFER = 3
    INITIATE_SEEK = 4
    WRITE_FORMAT = 5
    SEEK_COMPLETE = 6
    RETURN_TO_ZERO = 7
    RUN_ECC = 8
    SELECT_RELEASE = 9


class SMDRegister(IntEnum):
    """Register offsets relative to the controller's base IOX address."""

    READ_MEMORY_ADDRESS = 0
    LOAD_MEMORY_ADDRESS = 1
    READ_SEEK_CONDITION = 2
    LOAD_BLOCK_ADDRESS = 3
    READ_STATUS_REGISTER = 4
    LOAD_CONTROL_WORD = 5
    READ_BLOCK_ADDRESS = 6
    LOAD_WORD_COUNTER = 7


class _Bits:
    """A bit field inside a 16-bit register's raw value."""

    def __init__(self, shift, width=1):
        self.shift = shift
        self.mask = (1 << width) - 1

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return (obj.raw >> self.shift) & self.mask

    def __set__(self, obj, value):
        cleared = obj.raw & ~(self.mask << self.shift)
        obj.raw = cleared | ((int(value) & self.mask) << self.shift)


class _Register:
    """A 16-bit register whose bits are exposed as named fields."""

    __slots__ = ("_raw",)

    def __init__(self, raw=0):
        self.raw = raw

    @property
    def raw(self):
        return self._raw

    @raw.setter
    def raw(self, value):
        self._raw = int(value) & 0xFFFF

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self):
        return hash((type(self), self._raw))

    def __repr__(self):
        return f"{type(self).__name__}(raw=0o{self._raw:06o})"


class StatusRegister(_Register):
    """Status word read at base + 4 (IOX 1544)."""

    __slots__ = ()

    interrupt_enabled = _Bits(0)
    error_interrupt_enabled = _Bits(1)
    active = _Bits(2)
    ready_for_transfer = _Bits(3)
    hardware_error = _Bits(4)
    illegal_load = _Bits(5)
    time_out = _Bits(6)
    hardware_error2 = _Bits(7)
    address_mismatch = _Bits(8)
    comparer_error = _Bits(10)
    disk_unit_not_ready = _Bits(13)
    on_cylinder = _Bits(14)
    register_multiplex_bit = _Bits(15)


class ControlRegister(_Register):
    """Control word loaded at base + 5 (IOX 1545)."""

    __slots__ = ()

    enable_interrupt_not_active = _Bits(0)
    enable_interrupt_on_errors = _Bits(1)
    active = _Bits(2)
    test_mode = _Bits(3)
    device_clear = _Bits(4)
    address_bit16 = _Bits(5)
    address_bit17 = _Bits(6)
    unit_select = _Bits(7, 3)
    marginal_recovery_cycle = _Bits(10)
    device_operation = _Bits(11, 4)
    register_multiplex_bit = _Bits(15)


class SeekCondition(_Register):
    """Seek condition word read at base + 2 (IOX 1542)."""

    __slots__ = ()

    seek_complete = _Bits(0, 8)
    unit_selected = _Bits(8, 3)
    seek_error = _Bits(11)
    is_smd15mhz = _Bits(12)
    ecc_correctable = _Bits(13)
    ecc_parity_error = _Bits(14)
    address_field = _Bits(15)