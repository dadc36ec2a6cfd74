"""Register state and data transfers of the SMD disk controller."""

from dataclasses import dataclass, field
from typing import List, Optional

from nd100kit.disk import DiskInfo
from nd100kit.smd_registers import (
    ControllerType,
    ControlRegister,
    DeviceOperation,
    DiskError,
    SeekCondition,
    StatusRegister,
)

MAX_UNITS = 4

_NOT_READY_ERRORS = {
    DiskError.NO_DISK_ATTACHED,
    DiskError.SEEK_ERROR,
    DiskError.READ_ERROR,
    DiskError.DRIVE_NOT_SELECTED,
    DiskError.WRITE_PROTECT_ERROR,
}


class _TransferError(Exception):
    """Internal signal that a transfer stopped with a controller error."""

    def __init__(self, error):
        super().__init__(error)
        self.error = error


def _read_word(file):
    data = file.read(2)
    if len(data) < 2:
        raise _TransferError(DiskError.READ_ERROR)
    return int.from_bytes(data, "big")


def _write_word(file, value):
    try:
        file.write((int(value) & 0xFFFF).to_bytes(2, "big"))
    except OSError as exc:
        raise _TransferError(DiskError.READ_ERROR) from exc


def _dma_read(memory, address):
    try:
        return int(memory[address]) & 0xFFFF
    except (IndexError, KeyError) as exc:
        raise _TransferError(DiskError.READ_ERROR) from exc


def _dma_write(memory, address, value):
    try:
        memory[address] = value & 0xFFFF
    except (IndexError, KeyError) as exc:
        raise _TransferError(DiskError.READ_ERROR) from exc


def _default_disks():
    return [DiskInfo(unit=unit) for unit in range(MAX_UNITS)]


@dataclass
class SMDState:
    """Registers, flip-flops and attached drives of one SMD controller."""

    controller_type: ControllerType = ControllerType.SMD_15MHZ
    status: StatusRegister = field(default_factory=StatusRegister)
    control: ControlRegister = field(default_factory=ControlRegister)
    seek_condition: SeekCondition = field(default_factory=SeekCondition)

    wcw_flip_flop: bool = False
    wcr_flip_flop: bool = False
    wc_eccw_flip_flop: bool = False
    maw_flip_flop: bool = False
    mar_flip_flop: bool = False

    selected_unit: int = 0
    block_address_i: int = 0
    block_address_ii: int = 0
    core_address: int = 0
    core_address_hi: int = 0
    word_counter: int = 0
    word_counter_hi: int = 0
    ecc_control: int = 0
    ecc_control_hi: int = 0
    ecc_pattern: int = 0
    ecc_count: int = 0

    disks: List[DiskInfo] = field(default_factory=_default_disks)
    selected_disk: Optional[DiskInfo] = None

    @property
    def has_flip_flops(self):
        """True if wide registers are loaded by two successive writes."""
        return ControllerType(self.controller_type).has_flip_flops

    def clear_flip_flops(self):
        """Reset every upper/lower word flip-flop."""
        self.wcw_flip_flop = False
        self.wc_eccw_flip_flop = False
        self.wcr_flip_flop = False
        self.maw_flip_flop = False
        self.mar_flip_flop = False

    def clear_errors(self):
        """Clear the error bits of the status and seek condition registers."""
        self.status.hardware_error = 0
        self.status.hardware_error2 = 0
        self.status.illegal_load = 0
        self.status.time_out = 0
        self.status.comparer_error = 0
        self.status.address_mismatch = 0
        self.seek_condition.seek_error = 0

    def select_unit(self, unit):
        """Select drive ``unit`` (only units 0-3 exist)."""
        self.selected_unit = unit & 0x03
        self.selected_disk = self.disks[self.selected_unit]

    def handle_error(self, error):
        """Record ``error`` in the status register."""
        error = DiskError(error)
        if error in _NOT_READY_ERRORS:
            self.status.disk_unit_not_ready = 1
        elif error is DiskError.ADDRESS_MISMATCH:
            self.status.address_mismatch = 1
        elif error is DiskError.COMPARER_ERROR:
            self.status.comparer_error = 1
        elif error is DiskError.ILLEGAL_WHILE_ACTIVE:
            self.status.illegal_load = 1

    def chs_to_lba(self, cylinder, head, sector):
        """Convert a cylinder/head/sector address of the selected drive to a block number.

        Returns -1 if no drive is selected. Sector numbering starts at 0.
        """
        disk = self.selected_disk
        if disk is None:
            return -1
        if cylinder == 0 and head == 0 and sector == 0:
            return 0
        return (cylinder * disk.heads_pr_cylinder + head) * disk.sectors_pr_track + sector

    def increment_core_address(self):
        """Advance the 24-bit memory address register and return the new address."""
        address = ((self.core_address_hi << 16) | self.core_address) + 1
        self.core_address = address & 0xFFFF
        self.core_address_hi = (address >> 16) & 0xFF
        return address

    def decrement_word_counter(self):
        """Decrement the 24-bit word counter and return the new count."""
        counter = (((self.word_counter_hi << 16) | self.word_counter) - 1) & 0xFFFFFFFF
        self.word_counter = counter & 0xFFFF
        self.word_counter_hi = (counter >> 16) & 0xFF
        return counter

    def _open_selected(self, disk):
        try:
            disk.file = open(disk.disk_file_name, "rb+")
        except OSError as exc:
            print(f"Failed to open file {disk.disk_file_name}: {exc.strerror}")
            disk.file = None
            return False
        return True

    def execute_go(self, memory):
        """Carry out the operation in the control word on the selected drive.

        ``memory`` is indexed by physical address for DMA reads and writes.
        Returns the unit number whose completion (:meth:`read_end`) should be
        scheduled, or None if nothing is to be completed.
        """
        disk = self.selected_disk
        if disk is None:
            return None

        sector = self.block_address_i & 0xFF
        head = (self.block_address_i >> 8) & 0xFF
        cylinder = self.block_address_ii

        position = self.chs_to_lba(cylinder, head, sector) * disk.bytes_pr_sector
        self.seek_condition.seek_complete &= ~(1 << self.selected_unit)

        max_position = (
            self.chs_to_lba(disk.max_cylinders, disk.heads_pr_cylinder, disk.sectors_pr_track)
            * disk.bytes_pr_sector
        )
        out_of_range = (
            position > max_position
            or head >= disk.max_cylinders
            or sector >= disk.sectors_pr_track
        )
        if out_of_range and not self.control.test_mode:
            self.handle_error(DiskError.ADDRESS_MISMATCH)
            return None

        try:
            operation = DeviceOperation(self.control.device_operation)
        except ValueError:
            operation = None

        if disk.disk_is_write_protected and operation in (
            DeviceOperation.WRITE_TRANSFER,
            DeviceOperation.WRITE_FORMAT,
        ):
            disk.disk_unit_not_ready = True
            self.handle_error(DiskError.WRITE_PROTECT_ERROR)
            return None

        if disk.file is None and not self._open_selected(disk):
            self.handle_error(DiskError.READ_ERROR)
            return None

        if position < 0:
            self.handle_error(DiskError.SEEK_ERROR)
            return None
        try:
            disk.file.seek(position)
        except (OSError, ValueError):
            self.handle_error(DiskError.SEEK_ERROR)
            return None

        try:
            return self._run_operation(operation, disk, memory)
        except _TransferError as exc:
            self.handle_error(exc.error)
            return None

    def _run_operation(self, operation, disk, memory):
        word_count = (self.word_counter_hi << 16) | self.word_counter
        core = (self.core_address_hi << 16) | self.core_address

        if operation is DeviceOperation.READ_TRANSFER:
            while word_count > 0:
                _dma_write(memory, core, _read_word(disk.file))
                core = self.increment_core_address()
                word_count = self.decrement_word_counter()
        elif operation is DeviceOperation.WRITE_TRANSFER:
            while word_count > 0:
                _write_word(disk.file, _dma_read(memory, core))
                core = self.increment_core_address()
                word_count = self.decrement_word_counter()
        elif operation is DeviceOperation.READ_PARITY:
            while word_count > 0:
                _read_word(disk.file)
                core = self.increment_core_address()
                word_count = self.decrement_word_counter()
        elif operation is DeviceOperation.COMPARE_TRANSFER:
            while word_count > 0:
                if _read_word(disk.file) != _dma_read(memory, core):
                    raise _TransferError(DiskError.COMPARER_ERROR)
                core = self.increment_core_address()
                word_count = self.decrement_word_counter()
        elif operation is DeviceOperation.INITIATE_SEEK:
            self.seek_condition.seek_error = 0
        elif operation is DeviceOperation.WRITE_FORMAT:
            pass
        elif operation in (DeviceOperation.SEEK_COMPLETE, DeviceOperation.RETURN_TO_ZERO):
            disk.on_cylinder = True
            self.seek_condition.seek_error = 0
            self.seek_condition.seek_complete = 1 << self.selected_unit
        elif operation is DeviceOperation.SELECT_RELEASE:
            self.selected_disk = None
            return None
        else:
            return None
        return disk.unit

    def read_end(self, drive):
        """Finish an operation on ``drive``; return True if an interrupt is due."""
        self.status.active = 0
        self.status.ready_for_transfer = 1
        self.clear_flip_flops()
        self.seek_condition.seek_complete = 1 << drive
        return bool(self.status.interrupt_enabled)