import pytest

from nd100kit.smd_controller import SMDController
from nd100kit.smd_registers import SMDRegister

BASE = 0o1540


def _words(count):
    return [(i * 7 + 3) & 0xFFFF for i in range(count)]


def _image(path, words):
    path.write_bytes(b"".join(w.to_bytes(2, "big") for w in words))
    return str(path)


@pytest.fixture
def controller(tmp_path):
    image = _image(tmp_path / "unit0.img", _words(4096))
    names = [image] + [str(tmp_path / f"missing{u}.img") for u in range(1, 4)]
    ctrl = SMDController(0, memory=[0] * 0x10000, disk_files=names, io_delay_ticks=2)
    yield ctrl
    ctrl.close()


def _reg(r):
    return BASE + int(r)


def test_unknown_thumbwheel_raises():
    with pytest.raises(ValueError):
        SMDController(7)


def test_thumbwheel_addresses(controller):
    assert controller.start_address == 0o1540
    assert controller.end_address == 0o1547
    assert controller.ident_code == 0o17


def test_read_without_selected_disk_is_zero(controller):
    assert controller.read(_reg(SMDRegister.READ_STATUS_REGISTER)) == 0


def test_boot_loads_first_two_kilowords(controller):
    assert controller.boot() == 0
    assert controller.memory[:2048] == _words(2048)
    assert controller.memory[2048] == 0


def test_boot_without_image_raises(tmp_path):
    names = [str(tmp_path / f"none{u}.img") for u in range(4)]
    ctrl = SMDController(0, disk_files=names)
    with pytest.raises(OSError):
        ctrl.boot()
    assert ctrl.state.status.disk_unit_not_ready == 1


def test_memory_address_flip_flops_round_trip(controller):
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 0)
    controller.write(_reg(SMDRegister.LOAD_MEMORY_ADDRESS), 0x12)
    controller.write(_reg(SMDRegister.LOAD_MEMORY_ADDRESS), 0x3456)
    assert controller.read(_reg(SMDRegister.READ_MEMORY_ADDRESS)) == 0x3456
    assert controller.read(_reg(SMDRegister.READ_MEMORY_ADDRESS)) == 0x12


def test_status_read_resets_flip_flops(controller):
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 0)
    controller.write(_reg(SMDRegister.LOAD_MEMORY_ADDRESS), 0x12)
    assert controller.state.maw_flip_flop is True
    status = controller.read(_reg(SMDRegister.READ_STATUS_REGISTER))
    assert status & (1 << 3)
    assert controller.state.maw_flip_flop is False


def test_block_address_round_trip(controller):
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 0)
    controller.write(_reg(SMDRegister.LOAD_BLOCK_ADDRESS), 0o401)
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 1 << 15)
    controller.write(_reg(SMDRegister.LOAD_BLOCK_ADDRESS), 0o22)
    assert controller.read(_reg(SMDRegister.READ_BLOCK_ADDRESS)) == 0o22
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 0)
    assert controller.read(_reg(SMDRegister.READ_BLOCK_ADDRESS)) == 0o401


def _setup_transfer(ctrl, core, count):
    ctrl.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 0)
    ctrl.write(_reg(SMDRegister.LOAD_BLOCK_ADDRESS), 0)
    ctrl.write(_reg(SMDRegister.LOAD_MEMORY_ADDRESS), 0)
    ctrl.write(_reg(SMDRegister.LOAD_MEMORY_ADDRESS), core)
    ctrl.write(_reg(SMDRegister.LOAD_WORD_COUNTER), 0)
    ctrl.write(_reg(SMDRegister.LOAD_WORD_COUNTER), count)


def test_read_transfer_then_interrupt_and_ident(controller):
    _setup_transfer(controller, 0o100, 4)
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 0b101)
    assert controller.memory[0o100:0o104] == _words(4)
    assert controller.state.status.active == 1
    controller.tick()
    bits = controller.tick()
    assert bits & (1 << 11)
    assert controller.state.status.active == 0
    assert controller.ident(11) == 0o17
    assert controller.interrupt_bits & (1 << 11) == 0
    assert controller.ident(11) == 0


def test_write_transfer_updates_image(tmp_path):
    image = _image(tmp_path / "unit0.img", _words(4096))
    names = [image] + [str(tmp_path / f"m{u}.img") for u in range(1, 4)]
    memory = [0] * 0x10000
    memory[0o200:0o203] = [0o111, 0o222, 0o333]
    ctrl = SMDController(0, memory=memory, disk_files=names)
    _setup_transfer(ctrl, 0o200, 3)
    ctrl.write(_reg(SMDRegister.LOAD_CONTROL_WORD), (1 << 11) | 0b100)
    assert ctrl.state.word_counter == 0
    assert ctrl.state.core_address == 0o203
    ctrl.close()
    data = (tmp_path / "unit0.img").read_bytes()
    assert [int.from_bytes(data[i : i + 2], "big") for i in (0, 2, 4)] == [0o111, 0o222, 0o333]
    assert data[6:8] == _words(4)[3].to_bytes(2, "big")


def test_load_block_address_while_active_is_illegal(controller):
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 0)
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), (4 << 11) | 0b100)
    controller.write(_reg(SMDRegister.LOAD_BLOCK_ADDRESS), 5)
    assert controller.state.status.illegal_load == 1
    assert controller.state.block_address_i == 0
    status = controller.read(_reg(SMDRegister.READ_STATUS_REGISTER))
    assert (status & (1 << 5)) == 1 << 5
    assert (status & (1 << 4)) == 1 << 4


def test_address_mismatch_on_bad_sector(controller):
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 0)
    controller.write(_reg(SMDRegister.LOAD_BLOCK_ADDRESS), 18)
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 0b100)
    assert controller.state.status.address_mismatch == 1


def test_seek_condition_reports_selected_unit(controller):
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 1 << 7)
    value = controller.read(_reg(SMDRegister.READ_SEEK_CONDITION))
    assert (value >> 8) & 0b111 == 1
    assert value & (1 << 12)


def test_ecc_pattern_read(controller):
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 1 << 15)
    assert controller.read(_reg(SMDRegister.READ_STATUS_REGISTER)) == 0b1011100000000000


def test_device_clear_marks_seek_complete(controller):
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 0)
    controller.write(_reg(SMDRegister.LOAD_MEMORY_ADDRESS), 3)
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 1 << 4)
    assert controller.state.seek_condition.seek_complete & 1
    assert controller.state.status.ready_for_transfer == 0
    assert controller.state.core_address_hi == 0


def test_reset_clears_status(controller):
    controller.write(_reg(SMDRegister.LOAD_CONTROL_WORD), 1)
    assert controller.state.status.raw != 0
    controller.reset()
    assert controller.state.status.raw == 0
    assert controller.state.control.raw == 0


def test_close_closes_images(controller):
    assert controller.state.disks[0].file is not None
    controller.close()
    assert all(disk.file is None for disk in controller.state.disks)