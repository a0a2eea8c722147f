"""Minimal ZIP archive writer for bundling exported files.

Entries are "stored" (no compression). Layout:

    [local file header + name + data] * N
    [central directory header + name] * N
    [end of central directory record]
"""

import struct
from collections.abc import Iterable
from datetime import datetime
from functools import lru_cache

from gpt_exporter.logging import get_logger
from gpt_exporter.models import ExportedFile

logger = get_logger("export.archive")

LOCAL_FILE_HEADER_SIGNATURE = 0x04034B50
CENTRAL_DIRECTORY_SIGNATURE = 0x02014B50
END_OF_CENTRAL_DIRECTORY_SIGNATURE = 0x06054B50

VERSION = 20  # 2.0: minimum for stored entries
METHOD_STORED = 0
FLAG_UTF8_NAME = 0x0800

MAX_ENTRIES = 0xFFFF
MAX_SIZE = 0xFFFFFFFF

# signature, version, flags, method, time, date, crc, csize, usize, name len, extra len
_LOCAL_HEADER = struct.Struct("<IHHHHHIIIHH")
# signature, made by, needed, flags, method, time, date, crc, csize, usize,
# name len, extra len, comment len, disk, internal attrs, external attrs, offset
_CENTRAL_HEADER = struct.Struct("<IHHHHHHIIIHHHHHII")
# signature, disk, cd disk, entries on disk, entries, cd size, cd offset, comment len
_END_RECORD = struct.Struct("<IHHHHIIH")

DOS_EPOCH = datetime(1980, 1, 1)


@lru_cache(maxsize=1)
def crc32_table() -> tuple[int, ...]:
    """Reflected CRC-32 (polynomial 0xEDB88320) lookup table."""
    table = []
    for n in range(256):
        c = n
        for _ in range(8):
            c = (c >> 1) ^ 0xEDB88320 if c & 1 else c >> 1
        table.append(c)
    return tuple(table)


def crc32(data: bytes) -> int:
    table = crc32_table()
    crc = 0xFFFFFFFF
    for byte in data:
        crc = (crc >> 8) ^ table[(crc ^ byte) & 0xFF]
    return crc ^ 0xFFFFFFFF


def dos_datetime(moment: datetime | None) -> tuple[int, int]:
    """Encode a datetime as (dos_time, dos_date); clamps to the DOS epoch."""
    if moment is None or moment.year < 1980:
        moment = DOS_EPOCH
    dos_time = (moment.hour << 11) | (moment.minute << 5) | (moment.second // 2)
    dos_date = ((moment.year - 1980) << 9) | (moment.month << 5) | moment.day
    return dos_time, dos_date


def _to_entry(item: ExportedFile | tuple[str, str | bytes]) -> tuple[str, bytes]:
    if isinstance(item, ExportedFile):
        filename, content = item.filename, item.content
    else:
        filename, content = item
    data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
    return filename, data


def archive(
    files: Iterable[ExportedFile | tuple[str, str | bytes]],
    modified: datetime | None = None,
) -> bytes:
    """Package files into a single ZIP archive.

    Args:
        files: ExportedFile objects or (filename, content) pairs, in order.
               String content is encoded as UTF-8.
        modified: Modification time stamped on every entry
                  (defaults to 1980-01-01 00:00)

    Returns:
        The complete archive as bytes

    Raises:
        ValueError: If the archive exceeds ZIP32 limits
    """
    entries = [_to_entry(item) for item in files]
    if len(entries) > MAX_ENTRIES:
        raise ValueError(f"Too many entries for ZIP32: {len(entries)}")

    dos_time, dos_date = dos_datetime(modified)
    body = bytearray()
    central = bytearray()

    for filename, data in entries:
        name = filename.encode("utf-8")
        flags = FLAG_UTF8_NAME if not filename.isascii() else 0
        checksum = crc32(data)
        size = len(data)
        offset = len(body)

        if size > MAX_SIZE or offset > MAX_SIZE:
            raise ValueError(f"Entry too large for ZIP32: {filename}")

        body += _LOCAL_HEADER.pack(
            LOCAL_FILE_HEADER_SIGNATURE, VERSION, flags, METHOD_STORED,
            dos_time, dos_date, checksum, size, size, len(name), 0,
        )
        body += name
        body += data

        central += _CENTRAL_HEADER.pack(
            CENTRAL_DIRECTORY_SIGNATURE, VERSION, VERSION, flags, METHOD_STORED,
            dos_time, dos_date, checksum, size, size, len(name), 0, 0, 0, 0, 0, offset,
        )
        central += name

    if len(body) > MAX_SIZE:
        raise ValueError("Archive too large for ZIP32")

    end = _END_RECORD.pack(
        END_OF_CENTRAL_DIRECTORY_SIGNATURE, 0, 0,
        len(entries), len(entries), len(central), len(body), 0,
    )

    logger.debug("Built archive: entries=%d bytes=%d", len(entries), len(body) + len(central) + len(end))

    return bytes(body + central + end)
