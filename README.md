# nd100kit

Building blocks for emulating a Norsk Data ND-100 minicomputer:

- **`nd100kit.log`**: a small levelled console logger (`LogLevel`,
  `set_min_level`, `log`).
- **`nd100kit.bpun`**: a reader for BPUN boot images, including the FloMon
  floppy boot-sector variant (`load_bpun_stream`, `load_bpun`, `BpunHeader`,
  `BpunError`).
- **`nd100kit.disk`**: SMD disk units and their geometries (`DiskType`, `DiskInfo`).
- **`nd100kit.smd_registers`**: the SMD controller's register layouts and codes
  (`StatusRegister`, `ControlRegister`, `SeekCondition`, `SMDRegister`,
  `DeviceOperation`, `DiskError`, `ControllerType`).
- **`nd100kit.smd_transfer`**: the controller's register state and its DMA
  transfers between disk image files and memory (`SMDState`).
- **`nd100kit.smd_controller`**: the SMD controller as seen through its eight
  IOX registers (`SMDController`).
- **`nd100kit.terminal`**: the serial terminal device with its input queue and
  status registers (`TerminalDevice`, `DeviceDefinition`, `device_definition`).
- **`nd100kit.config`**: the emulator's command-line options (`Config`,
  `BootType`, `parse_command_line`, `format_help`, `ConfigError`).

The package has no dependencies outside the standard library.

## Loading a BPUN image

A BPUN file is an ASCII preamble followed by a binary block of 16-bit words.
The loader does not own any memory. It calls the function you give it once for
every word it loads:

```python
from nd100kit.bpun import BpunError, load_bpun_stream

memory = {}

def write_word(address, value):
    memory[address] = value

with open("program.bpun", "rb") as stream:
    try:
        header = load_bpun_stream(stream, write_word)
    except BpunError as exc:
        print("not a valid BPUN image:", exc)
    else:
        print(oct(header.boot), header.checksum_ok)
```

`load_bpun(filename, write_word, verbose=False)` does the same for a path and
returns the boot address. It raises `OSError` if the file cannot be opened and
`BpunError` if the data is truncated or malformed. With `verbose` set it also
prints the header fields and the result of the checksum check. Each word
written is also reported at debug level through the standard `logging` module.

## SMD disk controller

`SMDController` answers IOX reads and writes on its eight registers. The
thumbwheel (0 to 3) selects the base address: 0o1540, 0o1550, 0o540 or 0o550.
The controller interrupts on level 11. Memory for DMA is any mutable sequence
indexed by physical address; by default it is a list of 65536 words.

```python
from nd100kit.smd_controller import SMDController

memory = [0] * 0x10000
with SMDController(thumbwheel=0, memory=memory, disk_files=["disk0.img"]) as smd:
    start = smd.boot()                        # copies 2048 words of unit 0 to address 0
    status = smd.read(smd.start_address + 4)  # status register
```

Disk images hold big-endian 16-bit words. Units without a file name use
`SMD0.IMG` to `SMD3.IMG` in the working directory, and every image that opens
is given the 75 MB geometry. An operation started through the control word
completes `io_delay_ticks` calls of `tick()` later (10 by default). Then
`tick()` returns interrupt bits, and `ident(11)` returns the ident code.

A unit whose image could not be opened has no geometry. The controller reports
an address mismatch for transfers on it, and `boot()` raises `OSError`.

## Terminal device

```python
from nd100kit.terminal import TerminalDevice

printed = []
console = TerminalDevice(thumbwheel=1, output=printed.append)
console.write(console.start_address + 5, ord("A"))   # printed == ["A"]

console.queue_key_code("x")
for _ in range(101):
    console.tick()
key = console.read(console.start_address)            # the queued character
```

Without an `output` callable, written characters are printed to standard
output. Queued keys reach the input data register at most once every 101
ticks, and only while output is ready. The input control word decides the
character length and parity. The queue holds 256 keys. When it is full, the
overrun bit of the input status is set. `device_definition(thumbwheel)` gives
the address, ident code and logical device number of each of the 52 terminal
slots.

## Command-line options

```python
from nd100kit.config import ConfigError, format_help, parse_command_line

try:
    config = parse_command_line(["--boot=floppy", "--verbose"])
except ConfigError as exc:
    print(exc)
    print(format_help("nd100x"))
```

The boot types are `bp`, `bpun`, `aout`, `floppy` and `smd`. A boot type is
required unless `--help` or `--debugger` is given. Floppy boots default to the
image `FLOPPY.IMG`. The other boot types, except `smd`, need `--image`.
`--start` accepts decimal, octal (leading `0`) or hexadecimal (leading `0x`).
The help text lists `-p/--port`, but the parser rejects it with `ConfigError`,
so `debugger_port` stays 4711.

## Logging

```python
from nd100kit.log import LogLevel, log, set_min_level

set_min_level(LogLevel.INFO)
log(LogLevel.DEBUG, "hidden")
log(LogLevel.WARNING, "shown with a [WARNING] prefix")
```

## What the package does not do

There is no CPU, memory-management unit or instruction set here. There is no
device bus that joins the devices to a machine, and no command that runs an
emulator. The terminal and the disk controller are driven by calling their
`read`, `write`, `tick` and `ident` methods directly. `BootType` names a.out and
BP boots, but the package has a loader only for BPUN images and an SMD boot.