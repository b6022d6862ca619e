#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# GRF VFS - Read-only virtual file system for GRF archives
# Copyright (C) 2026 GRF VFS contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
GRF header and file table.

Layout (little-endian):
    Header (46 bytes): signature[16], watermark[14], fileTableOffset:u32,
                       reserved1:u32, reserved2:u32, version{padding, major, minor, build}
    At 46 + fileTableOffset: compressedSize:u32, uncompressedSize:u32, deflate data
    Decompressed table: repeated {filename\\0, compressedLength:u32,
                       compressedLengthAligned:u32, uncompressedLength:u32, flags:u8, offset:u32}
"""

import os
import struct

from collections import namedtuple
from dataclasses import dataclass
from enum import IntFlag
from typing import BinaryIO, Iterable, Iterator, List, Optional

from grfvfs.Decompressor import inflate
from grfvfs.Errors import ArchiveIOError, FileTableError, UnsupportedVersionError, WrongSignatureError
from grfvfs.Kernel import getLogger
from grfvfs.Settings import GRF_SIGNATURE, HEADER_SIZE, SettingsGetter
from grfvfs.Utils import decodeText, formatSize

HEADER_FORMAT = struct.Struct('<16s14sIII4B')
TABLE_SIZES_FORMAT = struct.Struct('<II')
ENTRY_FORMAT = struct.Struct('<IIIBI')

# reserved2 - reserved1 - FILE_COUNT_BIAS is the number of records in the table.
FILE_COUNT_BIAS = 7

logger = getLogger(__name__)


def normalizePath(path) -> str:
    """
    Lookup key of an archive path: '/' separators, no empty or '.' parts,
    no leading or trailing separator, lower case. The root is ''.
    """
    if isinstance(path, os.PathLike):
        path = os.fspath(path)

    parts = [part for part in str(path).replace('\\', '/').split('/') if part and part != '.']
    return '/'.join(parts).lower()


def readExactly(stream: BinaryIO, size: int, what: str) -> bytes:
    """Read size bytes or raise ArchiveIOError"""
    try:
        data = stream.read(size)
    except OSError as e:
        raise ArchiveIOError(f"Failed to read {what}: {e}") from e

    if len(data) != size:
        raise ArchiveIOError(f"Unexpected end of archive while reading {what} ({len(data)} of {size} bytes)")
    return data


class Version(namedtuple('Version', ['padding', 'major', 'minor', 'build'])):
    __slots__ = ()

    def __str__(self):
        return f'{self.major}.{self.minor}.{self.build}'

    @property
    def code(self) -> str:
        """Hex form used by archive tools, e.g. 0x200"""
        return f'{(self.major << 8) | self.minor:#x}'


@dataclass(frozen=True)
class Header:
    signature: bytes
    watermark: bytes
    fileTableOffset: int
    reserved1: int
    reserved2: int
    version: Version

    @property
    def fileCount(self) -> int:
        """Record count stored in the reserved fields; negative when they hold no count"""
        return self.reserved2 - self.reserved1 - FILE_COUNT_BIAS

    @property
    def fileTablePosition(self) -> int:
        return HEADER_SIZE + self.fileTableOffset

    @classmethod
    def parse(cls, data: bytes, supportedVersions: Optional[Iterable] = None) -> 'Header':
        """
        Parse and validate the fixed header.

        Raises:
            ArchiveIOError: Fewer than HEADER_SIZE bytes
            WrongSignatureError: Signature is not 'Master of Magic'
            UnsupportedVersionError: Version outside supportedVersions
        """
        if len(data) < HEADER_SIZE:
            raise ArchiveIOError(f"Archive header needs {HEADER_SIZE} bytes, got {len(data)}")

        signature, watermark, fileTableOffset, reserved1, reserved2, *version = HEADER_FORMAT.unpack_from(data)

        if signature[:len(GRF_SIGNATURE)] != GRF_SIGNATURE:
            raise WrongSignatureError(signature)

        version = Version(*version)
        if supportedVersions is None:
            supportedVersions = SettingsGetter.getInstance().supportedVersions
        if tuple(version) not in {tuple(v) for v in supportedVersions}:
            raise UnsupportedVersionError(version)

        return cls(signature, watermark, fileTableOffset, reserved1, reserved2, version)


class EntryFlag(IntFlag):
    FILE = 0x01
    MIXED_ENCRYPTION = 0x02
    HEADER_ONLY_ENCRYPTION = 0x04


@dataclass(frozen=True)
class Entry:
    filename: str
    compressedLength: int
    compressedLengthAligned: int
    uncompressedLength: int
    flags: int
    offset: int

    @property
    def isFile(self) -> bool:
        return bool(self.flags & EntryFlag.FILE)

    @property
    def hasMixedEncryption(self) -> bool:
        return bool(self.flags & EntryFlag.MIXED_ENCRYPTION)

    @property
    def hasHeaderOnlyEncryption(self) -> bool:
        return bool(self.flags & EntryFlag.HEADER_ONLY_ENCRYPTION)

    @property
    def isEncrypted(self) -> bool:
        return self.hasMixedEncryption or self.hasHeaderOnlyEncryption

    @property
    def dataOffset(self) -> int:
        """Absolute position of the payload in the archive"""
        return HEADER_SIZE + self.offset

    @property
    def normalizedPath(self) -> str:
        return normalizePath(self.filename)

    def describeFlags(self) -> str:
        names = [
            name for name, present in (
                ('File', self.isFile),
                ('MixedEncryption', self.hasMixedEncryption),
                ('HeaderOnlyEncryption', self.hasHeaderOnlyEncryption),
            ) if present
        ]
        return ' | '.join(names) or 'Directory'

    def __str__(self):
        return (
            f"Entry {{\n"
            f"filename = {self.filename!r}\n"
            f"compressed length = {self.compressedLength}\n"
            f"compressed length aligned = {self.compressedLengthAligned}\n"
            f"uncompressed length = {self.uncompressedLength}\n"
            f"flags = {self.describeFlags()}\n"
            f"offset = {self.offset}\n"
            f"}}"
        )


def parseEntries(
    table: bytes, encoding: str = 'cp949', detectEncoding: bool = False, limit: Optional[int] = None
) -> List[Entry]:
    """
    Parse decompressed file table records.

    Parsing stops when the table is consumed or `limit` records were read;
    anything after the limit is ignored.

    Raises:
        FileTableError: A record is truncated or its filename cannot be decoded
    """
    entries = []
    position = 0
    size = len(table)

    while position < size and (limit is None or len(entries) < limit):
        end = table.find(b'\x00', position)
        if end < 0:
            raise FileTableError(f"File table truncated inside a filename at offset {position}")

        rawName = table[position:end]
        position = end + 1

        if position + ENTRY_FORMAT.size > size:
            raise FileTableError(f"File table truncated inside the record of {rawName!r}")

        compressedLength, compressedLengthAligned, uncompressedLength, flags, offset = \
            ENTRY_FORMAT.unpack_from(table, position)
        position += ENTRY_FORMAT.size

        try:
            filename = decodeText(rawName, encoding, detect=detectEncoding)
        except (UnicodeDecodeError, LookupError) as e:
            raise FileTableError(f"Filename {rawName!r} is not valid {encoding}: {e}") from e

        entries.append(
            Entry(
                filename=filename.replace('\\', '/'),
                compressedLength=compressedLength,
                compressedLengthAligned=compressedLengthAligned,
                uncompressedLength=uncompressedLength,
                flags=flags,
                offset=offset,
            )
        )

    return entries


class FileTable:
    """Immutable, ordered list of the entries of one archive"""

    def __init__(self, header: Header, entries: Iterable[Entry]):
        self._header = header
        self._entries = tuple(entries)

    @property
    def header(self) -> Header:
        return self._header

    @property
    def entries(self):
        return self._entries

    def __len__(self):
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)

    def __getitem__(self, index) -> Entry:
        return self._entries[index]

    def iterFiles(self) -> Iterator[Entry]:
        return (entry for entry in self._entries if entry.isFile)

    @classmethod
    def read(
        cls,
        stream: BinaryIO,
        encoding: Optional[str] = None,
        detectEncoding: Optional[bool] = None,
        supportedVersions: Optional[Iterable] = None,
        archiveSize: Optional[int] = None,
    ) -> 'FileTable':
        """
        Read header and file table from an archive opened in binary mode.

        Args:
            stream: Seekable binary stream positioned anywhere
            encoding: Filename code page (default from SettingsGetter)
            detectEncoding: Fall back to chardet for undecodable filenames
            supportedVersions: Accepted versions (default from SettingsGetter)
            archiveSize: Total archive size, used to flag out-of-bounds entries
        """
        settings = SettingsGetter.getInstance()
        encoding = encoding or settings.filenameEncoding
        detectEncoding = settings.detectFilenameEncoding if detectEncoding is None else detectEncoding

        try:
            stream.seek(0)
            header = Header.parse(readExactly(stream, HEADER_SIZE, 'header'), supportedVersions)
            stream.seek(header.fileTablePosition)
        except OSError as e:
            raise ArchiveIOError(f"Failed to seek archive: {e}") from e

        compressedSize, uncompressedSize = TABLE_SIZES_FORMAT.unpack(
            readExactly(stream, TABLE_SIZES_FORMAT.size, 'file table sizes')
        )
        compressed = readExactly(stream, compressedSize, 'file table')
        table = inflate(compressed, uncompressedSize, allowTrailing=True)

        limit = header.fileCount if header.fileCount >= 0 else None
        entries = parseEntries(table, encoding=encoding, detectEncoding=detectEncoding, limit=limit)

        if archiveSize is not None:
            for entry in entries:
                if entry.isFile and entry.dataOffset + entry.compressedLengthAligned > archiveSize:
                    logger.warning(f"Entry {entry.filename} ends past the end of the archive ({archiveSize} bytes)")

        logger.debug(
            f"File table read: version={header.version.code}, entries={len(entries)}, "
            f"table={formatSize(compressedSize)} -> {formatSize(uncompressedSize)}"
        )

        return cls(header, entries)
