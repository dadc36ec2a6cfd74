import io

import pytest

from nd100kit.bpun import BpunError, BpunHeader, load_bpun, load_bpun_stream


def _collect():
    memory = {}

    def write_word(address, value):
        memory[address] = value

    return memory, write_word


SIMPLE = (
    b"!"
    + bytes([0x01, 0x00])  # address
    + bytes([0x00, 0x02])  # count
    + bytes([0x12, 0x34, 0xAB, 0xCD])  # data
    + bytes([0xBE, 0x01])  # checksum
    + bytes([0x00, 0x00])  # action
)


def test_simple_image_loads_words():
    memory, write_word = _collect()
    header = load_bpun_stream(io.BytesIO(SIMPLE), write_word)
    assert memory == {0x0100: 0x1234, 0x0101: 0xABCD}
    assert header.address == 0x0100
    assert header.count == 2
    assert header.action == 0
    assert header.is_flomon is False


def test_checksum_is_verified():
    _, write_word = _collect()
    header = load_bpun_stream(io.BytesIO(SIMPLE), write_word)
    assert header.checksum == 0xBE01
    assert header.calculated_checksum == header.checksum
    assert header.checksum_ok


def test_bad_checksum_detected():
    bad = SIMPLE[:-4] + bytes([0x00, 0x01]) + SIMPLE[-2:]
    _, write_word = _collect()
    header = load_bpun_stream(io.BytesIO(bad), write_word)
    assert not header.checksum_ok


def test_boot_from_explicit_load_address():
    image = b"10/\r20!" + SIMPLE[1:]
    _, write_word = _collect()
    header = load_bpun_stream(io.BytesIO(image), write_word)
    assert header.start == 10
    assert header.boot == 20


def test_boot_from_last_value_when_load_address_matches_start():
    image = b"10/\r20\r!" + SIMPLE[1:]
    _, write_word = _collect()
    header = load_bpun_stream(io.BytesIO(image), write_word)
    assert header.start == 10
    assert header.boot == 20


def test_preamble_ignores_high_bit_and_other_characters():
    image = bytes([ord("1") | 0x80, ord("0")]) + b"/ xyz\r" + SIMPLE
    _, write_word = _collect()
    header = load_bpun_stream(io.BytesIO(image), write_word)
    assert header.start == 10


def test_stream_is_rewound_before_parsing():
    stream = io.BytesIO(SIMPLE)
    stream.seek(len(SIMPLE))
    memory, write_word = _collect()
    header = load_bpun_stream(stream, write_word)
    assert header.address == 0x0100
    assert header.count == 2
    assert memory[0x0100] == 0x1234


@pytest.mark.parametrize("cut", [0, 1, 2, 4, 6, 9, 11, len(SIMPLE) - 1])
def test_truncated_image_raises(cut):
    _, write_word = _collect()
    with pytest.raises(BpunError):
        load_bpun_stream(io.BytesIO(SIMPLE[:cut]), write_word)


def _flomon(words, separator=0):
    body = bytes([0])
    for word in words:
        body += bytes([word >> 8, separator, word & 0xFF, 0])
    return (
        b"!"
        + bytes([0, 0, 0, 0])  # address and count are zero
        + bytes([0])  # consumed by the empty data block
        + bytes([0, 0])  # zero checksum selects FloMon
        + bytes([len(words)])
        + body
    )


def test_flomon_image_loads_words():
    memory, write_word = _collect()
    header = load_bpun_stream(io.BytesIO(_flomon([0x1234, 0x5678])), write_word)
    assert header.is_flomon is True
    assert header.count == 2
    assert memory == {0: 0x1234, 1: 0x5678}


def test_flomon_bad_separator_raises():
    _, write_word = _collect()
    with pytest.raises(BpunError):
        load_bpun_stream(io.BytesIO(_flomon([0x1234], separator=7)), write_word)


def test_load_bpun_returns_boot_address(tmp_path):
    path = tmp_path / "image.bpun"
    path.write_bytes(b"10/\r20!" + SIMPLE[1:])
    memory, write_word = _collect()
    assert load_bpun(path, write_word) == 20
    assert memory[0x0101] == 0xABCD


def test_load_bpun_verbose_summary(tmp_path, capsys):
    path = tmp_path / "image.bpun"
    path.write_bytes(SIMPLE)
    _, write_word = _collect()
    load_bpun(path, write_word, verbose=True)
    out = capsys.readouterr().out
    assert "BPUN load OK" in out
    assert "Address: 000400" in out
    assert "[OK]" in out


def test_load_bpun_verbose_reports_crc_error(tmp_path, capsys):
    path = tmp_path / "image.bpun"
    path.write_bytes(SIMPLE[:-4] + bytes([0, 1]) + SIMPLE[-2:])
    _, write_word = _collect()
    load_bpun(path, write_word, verbose=True)
    assert "[CRC ERROR]" in capsys.readouterr().out


def test_load_bpun_missing_file(tmp_path):
    _, write_word = _collect()
    with pytest.raises(FileNotFoundError):
        load_bpun(tmp_path / "missing.bpun", write_word)


def test_load_bpun_corrupt_file(tmp_path):
    path = tmp_path / "bad.bpun"
    path.write_bytes(b"123/")
    _, write_word = _collect()
    with pytest.raises(BpunError):
        load_bpun(path, write_word)


def test_header_defaults():
    header = BpunHeader()
    assert (header.start, header.boot, header.count, header.is_flomon) == (0, 0, 0, False)