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
Read-only virtual file system over a GRF archive.

The whole file table is indexed when the archive is opened:
- a map from lookup key (see normalizePath) to the readable entry,
- the set of directories, derived from every strict prefix of every file path,
- the immediate children of each directory.

Nothing is mutated afterwards, so lookups need no locking. Payload reads share one
file handle; only the seek+read pair is serialized, decryption and decompression run
concurrently in the calling threads.
"""

import os
import contextlib
import threading

from typing import Dict, Iterator, List, Optional

from grfvfs.Decompressor import decompressEntry
from grfvfs.Decryptor import decryptEntry
from grfvfs.Errors import ArchiveIOError, EntryNotFoundError, GRFError, LockPoisonedError
from grfvfs.FileTable import Entry, FileTable, normalizePath, readExactly
from grfvfs.Kernel import EventTiming, GRFEvent, getLogger
from grfvfs.Utils import formatSize

ROOT = ''

logger = getLogger(__name__)


class GuardedHandle:
    """
    File handle shared by every reader of an archive.

    If a read is interrupted by anything but an I/O error while the lock is held
    (KeyboardInterrupt, MemoryError, ...), the handle is poisoned and refuses
    further use.
    """

    def __init__(self, stream):
        self._stream = stream
        self._lock = threading.Lock()
        self._poisoned = False

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    @property
    def closed(self) -> bool:
        return self._stream is None

    @contextlib.contextmanager
    def acquire(self):
        with self._lock:
            if self._poisoned:
                raise LockPoisonedError()
            if self._stream is None:
                raise ArchiveIOError("Archive is closed")

            try:
                yield self._stream
            except (OSError, GRFError, GeneratorExit):
                raise
            except BaseException:
                self._poisoned = True
                logger.error("Archive handle poisoned by an interrupted read")
                raise

    def readAt(self, position: int, size: int, what: str) -> bytes:
        with self.acquire() as stream:
            try:
                stream.seek(position)
            except OSError as e:
                raise ArchiveIOError(f"Failed to seek to {what}: {e}") from e
            return readExactly(stream, size, what)

    def close(self):
        with self._lock:
            if self._stream is not None:
                self._stream.close()
                self._stream = None


class Archive:
    """
    GRF archive opened for reading.

    Paths are matched case-insensitively and accept '/' or '\\' separators.
    Usable as a context manager; close() releases the file handle.
    """

    def __init__(
        self,
        path,
        filenameEncoding: Optional[str] = None,
        detectFilenameEncoding: Optional[bool] = None,
        supportedVersions=None,
    ):
        """
        Open an archive and index its file table.

        Args:
            path: Archive location on disk
            filenameEncoding: Code page of stored filenames (default from SettingsGetter)
            detectFilenameEncoding: Use chardet when a filename does not decode
            supportedVersions: Accepted header versions (default from SettingsGetter)

        Raises:
            ArchiveIOError, WrongSignatureError, UnsupportedVersionError,
            DecompressionError, FileTableError: The archive cannot be opened
        """
        self._path = os.fspath(path)

        try:
            stream = open(self._path, 'rb')
        except OSError as e:
            raise ArchiveIOError(f"Failed to open {self._path}: {e}") from e

        try:
            self._size = os.fstat(stream.fileno()).st_size
            self._fileTable = FileTable.read(
                stream,
                encoding=filenameEncoding,
                detectEncoding=detectFilenameEncoding,
                supportedVersions=supportedVersions,
                archiveSize=self._size,
            )
        except OSError as e:
            stream.close()
            raise ArchiveIOError(f"Failed to read {self._path}: {e}") from e
        except BaseException:
            stream.close()
            raise

        self._handle = GuardedHandle(stream)

        self._files: Dict[str, Entry] = {}
        self._filenames: Dict[str, str] = {}
        self._directories: Dict[str, str] = {ROOT: ROOT}
        self._children: Dict[str, Dict[str, str]] = {ROOT: {}}
        self._buildIndex()

        logger.debug(
            f"Archive opened: {self._path} ({formatSize(self._size)}), version={self.header.version}, "
            f"files={len(self._files)}, directories={len(self._directories)}"
        )

        try:
            GRFEvent.archiveOpen.trigger(archive=self)
        except BaseException:
            self._handle.close()
            raise

    def _addDirectory(self, key: str, display: str, parentKey: str):
        if key not in self._directories:
            self._directories[key] = display
            self._children[key] = {}
            self._children[parentKey][key] = display

    def _buildIndex(self):
        for entry in self._fileTable:
            parts = [part for part in entry.filename.replace('\\', '/').split('/') if part and part != '.']
            if not parts:
                logger.warning(f"Skipping file table record with an empty filename: {entry!r}")
                continue

            parentKey = ROOT
            for depth in range(1, len(parts)):
                display = '/'.join(parts[:depth])
                key = display.lower()
                self._addDirectory(key, display, parentKey)
                parentKey = key

            display = '/'.join(parts)
            key = display.lower()

            if not entry.isFile:
                # Directory records carry no data, they only make empty directories visible.
                self._addDirectory(key, display, parentKey)
                continue

            if key in self._files:
                logger.warning(f"Duplicate file {display} in file table, the last record wins")

            self._files[key] = entry
            self._filenames[key] = display
            self._children[parentKey][key] = display

    @property
    def path(self) -> str:
        return self._path

    @property
    def size(self) -> int:
        return self._size

    @property
    def header(self):
        return self._fileTable.header

    @property
    def fileTable(self) -> FileTable:
        return self._fileTable

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def __len__(self):
        return len(self._files)

    def __repr__(self):
        return f"<Archive {self._path!r} files={len(self._files)}>"

    def __enter__(self):
        return self

    def __exit__(self, excType, excValue, traceback):
        self.close()

    def close(self):
        if self._handle.closed:
            return

        self._handle.close()
        logger.debug(f"Archive closed: {self._path}")

        GRFEvent.archiveClose.trigger(archive=self)

    def getEntry(self, path) -> Entry:
        """
        Get the file table entry of a readable file.

        Raises:
            EntryNotFoundError: No file at path
        """
        entry = self._files.get(normalizePath(path))
        if entry is None:
            raise EntryNotFoundError(path)
        return entry

    def exists(self, path) -> bool:
        key = normalizePath(path)
        return key in self._files or key in self._directories

    def isFile(self, path) -> bool:
        return normalizePath(path) in self._files

    def isDirectory(self, path) -> bool:
        """
        Check whether path is a directory.

        Returns:
            bool: True for a directory, False for a file

        Raises:
            EntryNotFoundError: path is neither
        """
        key = normalizePath(path)
        if key in self._files:
            return False
        if key in self._directories:
            return True
        raise EntryNotFoundError(path)

    def readDirectory(self, path) -> List[str]:
        """
        List the files and subdirectories directly below path.

        Returns:
            list: Full '/'-separated paths, sorted case-insensitively

        Raises:
            EntryNotFoundError: path is not a directory of this archive, or is a file
        """
        key = normalizePath(path)
        # Files take precedence over a directory of the same name, as in isDirectory.
        children = None if key in self._files else self._children.get(key)
        if children is None:
            raise EntryNotFoundError(path)
        return sorted(children.values(), key=lambda child: (child.lower(), child))

    def iterFilenames(self) -> Iterator[str]:
        """Iterate over the path of every file; each call starts a new iteration."""
        yield from self._filenames.values()

    def readFile(self, path) -> bytes:
        """
        Read, decrypt and decompress one file.

        Raises:
            EntryNotFoundError: No file at path
            ArchiveIOError: Payload could not be read
            InvalidEntryError: Entry record is inconsistent
            DecompressionError: Payload does not inflate to the declared size
            LockPoisonedError: A previous read was interrupted while holding the handle
        """
        entry = self.getEntry(path)

        GRFEvent.fileRead.trigger(timing=EventTiming.BEFORE, archive=self, entry=entry)

        raw = self._handle.readAt(entry.dataOffset, entry.compressedLengthAligned, entry.filename)
        data = decompressEntry(entry, decryptEntry(entry, raw))

        logger.debug(f"Read {entry.filename}: {len(raw)} stored bytes -> {len(data)} bytes")

        GRFEvent.fileRead.trigger(timing=EventTiming.AFTER, archive=self, entry=entry, data=data)

        return data
