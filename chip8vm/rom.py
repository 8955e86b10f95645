"""ROM images and the zip archive they can be shipped in."""

import logging
import os
import zipfile
from dataclasses import dataclass
from typing import List

from .config import MAX_ROM_SIZE
from .errors import RomError, RomTooLargeError

logger = logging.getLogger(__name__)


def _pad_even(data: bytes) -> bytes:
    # an odd ROM gets one trailing zero so the last word can be fetched
    if len(data) % 2:
        return data + b"\x00"
    return data


@dataclass(frozen=True)
class Rom:
    """A read-only program image plus its name"""
    name: str
    data: bytes

    def __post_init__(self):
        data = _pad_even(bytes(self.data))
        if len(data) > MAX_ROM_SIZE:
            raise RomTooLargeError(len(data), MAX_ROM_SIZE)
        object.__setattr__(self, "data", data)

    @classmethod
    def from_file(cls, path: str) -> "Rom":
        with open(path, 'rb') as f:
            data = f.read()
        name = os.path.basename(path)
        logger.debug("Read ROM %s (%d bytes)", name, len(data))
        return cls(name, data)

    def __len__(self):
        return len(self.data)


class RomArchive:
    """A zip archive of ROM files, addressed by member name"""

    def __init__(self, path):
        self.path = path
        try:
            self._archive = zipfile.ZipFile(path)
        except zipfile.BadZipFile as e:
            raise RomError(f"{path} is not a ROM archive: {e}") from e

    def file_names(self) -> List[str]:
        return [
            info.filename for info in self._archive.infolist()
            if not info.is_dir()
        ]

    def get_rom(self, name: str) -> Rom:
        try:
            data = self._archive.read(name)
        except KeyError:
            raise RomError(f"No ROM named {name!r} in {self.path}") from None
        return Rom(name, data)

    def close(self):
        self._archive.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
