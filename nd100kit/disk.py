"""SMD disk drive geometry and image-file handling."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import IO, Optional


class DiskType(IntEnum):
    """Supported SMD disk drive models."""

    DISK_38_MB = 0
    DISK_75_MB = 1
    DISK_150_MB = 2
    DISK_288_MB = 3
    DISK_474_MB = 4
    DISK_515_MB = 5
    DISK_825_MB = 6


# heads per cylinder, sectors per track, cylinders
_GEOMETRY = {
    DiskType.DISK_38_MB: (5, 18, 411),
    DiskType.DISK_75_MB: (5, 18, 823),
    DiskType.DISK_150_MB: (10, 18, 823),
    DiskType.DISK_288_MB: (19, 18, 823),
    DiskType.DISK_474_MB: (20, 24, 842),
    DiskType.DISK_515_MB: (24, 26, 711),
    DiskType.DISK_825_MB: (16, 44, 1024),
}


@dataclass
class DiskInfo:
    """One SMD drive unit backed by an image file."""

    unit: int
    disk_file_name: Optional[str] = None
    disk_unit_not_ready: bool = False
    on_cylinder: bool = False
    disk_is_write_protected: bool = False
    bytes_pr_sector: int = 0
    heads_pr_cylinder: int = 0
    sectors_pr_track: int = 0
    max_cylinders: int = 0
    max_word_count: int = 0
    disk_type: Optional[DiskType] = None
    file: Optional[IO[bytes]] = field(default=None, repr=False)

    def __post_init__(self):
        if self.disk_file_name is None:
            self.disk_file_name = f"SMD{self.unit}.IMG"

    def set_disk_type(self, disk_type):
        """Apply the geometry of ``disk_type`` to this drive."""
        disk_type = DiskType(disk_type)
        self.disk_type = disk_type
        self.bytes_pr_sector = 1024
        self.max_word_count = 4095
        self.heads_pr_cylinder, self.sectors_pr_track, self.max_cylinders = _GEOMETRY[disk_type]

    def open(self):
        """Open the image file for read/write; return True on success.

        On success the drive is configured as a 75 MB disk.
        """
        try:
            self.file = open(self.disk_file_name, "rb+")
        except OSError:
            print(f"Error: Could not open disk file {self.disk_file_name}")
            self.file = None
            return False
        self.set_disk_type(DiskType.DISK_75_MB)
        return True

    def close(self):
        """Close the image file if it is open."""
        if self.file is not None:
            self.file.close()
            self.file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False