"""IOX register interface of the SMD disk controller."""

from nd100kit.disk import DiskInfo
from nd100kit.smd_registers import ControllerType, DiskError, SMDRegister
from nd100kit.smd_transfer import MAX_UNITS, SMDState

_THUMBWHEELS = {
    0: ("SMD 1540", 0o17, 0o1540),
    1: ("SMD 1550", 0o20, 0o1550),
    2: ("SMD 540", 0o23, 0o540),
    3: ("SMD 550", 0o06, 0o550),
}

BOOT_WORDS = 2048
INTERRUPT_LEVEL = 11


class SMDController:
    """An SMD disk controller answering IOX reads and writes.

    ``memory`` is a mutable sequence indexed by physical address, used for
    DMA transfers. ``disk_files`` names the image files of units 0-3; units
    without a name use ``SMD<unit>.IMG``. Completion of an operation is
    reported ``io_delay_ticks`` calls of :meth:`tick` after it started.
    """

    def __init__(self, thumbwheel=0, memory=None, disk_files=None, io_delay_ticks=10):
        try:
            name, ident_code, start_address = _THUMBWHEELS[thumbwheel]
        except KeyError:
            raise ValueError(f"SMD: Unknown thumbwheel value: {thumbwheel}") from None

        self.name = name
        self.ident_code = ident_code
        self.start_address = start_address
        self.end_address = start_address + 7
        self.interrupt_level = INTERRUPT_LEVEL
        self.interrupt_bits = 0
        self.memory = memory if memory is not None else [0] * 0x10000
        self.io_delay_ticks = io_delay_ticks
        self._pending = []

        names = list(disk_files or [])[:MAX_UNITS]
        names += [None] * (MAX_UNITS - len(names))
        disks = [DiskInfo(unit=unit, disk_file_name=file_name) for unit, file_name in enumerate(names)]
        for disk in disks:
            disk.open()

        self.state = SMDState(controller_type=ControllerType.SMD_15MHZ, disks=disks)
        self.reset()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _set_interrupt(self, active, level):
        if active:
            self.interrupt_bits |= 1 << level
        else:
            self.interrupt_bits &= ~(1 << level)

    def _queue_completion(self, drive):
        self._pending.append([self.io_delay_ticks, drive])

    def reset(self):
        """Clear the status and control registers."""
        self.state.status.raw = 0
        self.state.control.raw = 0

    def read(self, address):
        """Return the value of the register at IOX ``address``."""
        state = self.state
        if state.selected_disk is None:
            return 0
        reg = address - self.start_address
        mux = state.control.register_multiplex_bit
        value = 0

        if reg == SMDRegister.READ_MEMORY_ADDRESS:
            if mux:
                if not state.wcr_flip_flop or not state.has_flip_flops:
                    state.wcr_flip_flop = True
                    value = state.word_counter
                else:
                    state.wcr_flip_flop = False
                    value = state.word_counter_hi
            else:
                if not state.mar_flip_flop or not state.has_flip_flops:
                    state.mar_flip_flop = True
                    value = state.core_address
                else:
                    state.mar_flip_flop = False
                    value = state.core_address_hi

        elif reg == SMDRegister.READ_SEEK_CONDITION:
            if mux:
                value = state.ecc_count
            else:
                fast = state.controller_type in (ControllerType.SMD_15MHZ, ControllerType.SMD_10MHZ)
                state.seek_condition.is_smd15mhz = 1 if fast else 0
                state.seek_condition.unit_selected = state.selected_unit
                value = state.seek_condition.raw
                if fast:
                    value |= 1 << 12

        elif reg == SMDRegister.READ_STATUS_REGISTER:
            if mux:
                pattern = 0b111 << 11
                if state.controller_type in (ControllerType.BIG_DISC, ControllerType.ECC_DISC):
                    pattern |= 1 << 14
                pattern |= 1 << 15
                state.ecc_pattern = pattern
                value = pattern
            else:
                status = state.status
                status.hardware_error = (
                    status.illegal_load
                    | status.time_out
                    | status.comparer_error
                    | status.address_mismatch
                    | state.seek_condition.seek_error
                )
                disk = state.selected_disk
                status.on_cylinder = int(bool(disk.on_cylinder))
                status.disk_unit_not_ready = int(bool(disk.disk_unit_not_ready))
                value = status.raw
                state.clear_flip_flops()

        elif reg == SMDRegister.READ_BLOCK_ADDRESS:
            value = state.block_address_ii if mux else state.block_address_i

        return value & 0xFFFF

    def write(self, address, value):
        """Write ``value`` to the register at IOX ``address``."""
        state = self.state
        reg = address - self.start_address
        value &= 0xFFFF
        mux = state.control.register_multiplex_bit

        if reg == SMDRegister.LOAD_MEMORY_ADDRESS:
            if mux:
                if state.control.test_mode and state.control.marginal_recovery_cycle:
                    state.core_address = (state.core_address + 1) & 0xFFFF
                    state.word_counter = (state.word_counter - 1) & 0xFFFF
            else:
                if state.control.active:
                    state.handle_error(DiskError.ILLEGAL_WHILE_ACTIVE)
                    return
                if state.maw_flip_flop or not state.has_flip_flops:
                    state.core_address = value
                    state.maw_flip_flop = False
                else:
                    state.core_address_hi = value & 0xFF
                    state.maw_flip_flop = True

        elif reg == SMDRegister.LOAD_BLOCK_ADDRESS:
            if state.control.active:
                state.handle_error(DiskError.ILLEGAL_WHILE_ACTIVE)
                return
            if mux:
                state.block_address_ii = value
            else:
                state.block_address_i = value

        elif reg == SMDRegister.LOAD_CONTROL_WORD:
            self._load_control_word(value)

        elif reg == SMDRegister.LOAD_WORD_COUNTER:
            if mux:
                if state.wc_eccw_flip_flop or not state.has_flip_flops:
                    state.ecc_control = value
                    if value & 1:
                        state.ecc_count = 0
                    if value & (1 << 1):
                        state.status.hardware_error2 = 1
                    state.wc_eccw_flip_flop = False
                else:
                    state.ecc_control_hi = value & 0xFF
                    state.wc_eccw_flip_flop = True
            else:
                if state.wcw_flip_flop or not state.has_flip_flops:
                    state.word_counter = value
                    state.wcw_flip_flop = False
                else:
                    state.word_counter_hi = value & 0xFF
                    state.wcw_flip_flop = True

    def _load_control_word(self, value):
        state = self.state
        status = state.status
        control = state.control
        if status.active:
            return

        control.raw = value
        status.active = control.active
        status.register_multiplex_bit = control.register_multiplex_bit
        status.ready_for_transfer = 1
        status.interrupt_enabled = control.enable_interrupt_not_active
        status.error_interrupt_enabled = control.enable_interrupt_on_errors
        if not status.interrupt_enabled:
            self._set_interrupt(False, self.interrupt_level)

        if not state.has_flip_flops:
            state.core_address_hi = (value >> 5) & 0b11

        state.select_unit(control.unit_select)

        if control.device_clear:
            if state.selected_disk is not None:
                state.selected_disk.disk_unit_not_ready = False
            state.seek_condition.seek_complete |= 1 << state.selected_unit
            status.active = 0
            state.core_address = 0
            state.core_address_hi = 0
            state.block_address_i = 0
            state.block_address_ii = 0
            state.word_counter = 0
            state.word_counter_hi = 0
            status.ready_for_transfer = 0
            state.clear_flip_flops()
            state.clear_errors()

        disk = state.selected_disk
        if disk is not None:
            disk.on_cylinder = True

        if status.active:
            if disk is None:
                status.disk_unit_not_ready = 1
                state.handle_error(DiskError.DRIVE_NOT_SELECTED)
                return
            disk.on_cylinder = True
            disk.disk_unit_not_ready = False
            drive = state.execute_go(self.memory)
            if drive is not None:
                self._queue_completion(drive)
        elif control.test_mode:
            self._set_interrupt(bool(status.interrupt_enabled), self.interrupt_level)
        else:
            self._set_interrupt(
                bool(status.interrupt_enabled and status.ready_for_transfer), self.interrupt_level
            )

    def tick(self):
        """Advance pending operations by one tick; return the interrupt bits."""
        still_pending = []
        for entry in self._pending:
            entry[0] -= 1
            if entry[0] <= 0:
                if self.state.read_end(entry[1]):
                    self._set_interrupt(True, self.interrupt_level)
            else:
                still_pending.append(entry)
        self._pending = still_pending
        return self.interrupt_bits

    def ident(self, level):
        """Answer an IDENT on ``level``: the ident code if interrupting, else 0."""
        if self.interrupt_bits & (1 << level):
            self.state.status.interrupt_enabled = 0
            self._set_interrupt(False, level)
            return self.ident_code
        return 0

    def boot(self):
        """Copy the first 2 KW of unit 0 to memory address 0; return the boot address.

        Raises ``OSError`` if the image is not open or cannot be read.
        """
        state = self.state
        state.selected_unit = 0
        state.selected_disk = state.disks[0]
        disk = state.selected_disk

        if disk.file is None:
            state.handle_error(DiskError.READ_ERROR)
            raise OSError(f"Failed to open file {disk.disk_file_name}")

        try:
            disk.file.seek(0)
        except (OSError, ValueError) as exc:
            state.handle_error(DiskError.SEEK_ERROR)
            raise OSError("Failed to seek to the beginning of the disk") from exc

        data = disk.file.read(BOOT_WORDS * 2)
        if len(data) < BOOT_WORDS * 2:
            state.handle_error(DiskError.READ_ERROR)
            raise OSError(f"Short read from {disk.disk_file_name}")

        for address in range(BOOT_WORDS):
            self.memory[address] = int.from_bytes(data[address * 2 : address * 2 + 2], "big")
        return 0

    def close(self):
        """Close every attached disk image."""
        for disk in self.state.disks:
            disk.close()