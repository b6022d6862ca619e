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
Exceptions raised by the archive engine.

Open-time errors (WrongSignatureError, UnsupportedVersionError, FileTableError, and
ArchiveIOError/DecompressionError while reading the header or table) leave no archive
behind. Per-file errors only affect the readFile() call that raised them.
"""


class GRFError(Exception):
    """Base class of every archive error"""
    pass


class WrongSignatureError(GRFError):

    def __init__(self, signature: bytes):
        super().__init__(f"File had wrong signature: {signature!r}")
        self.signature = signature


class UnsupportedVersionError(GRFError):

    def __init__(self, version):
        super().__init__(f"GRF is on an unsupported version: {version}")
        self.version = version


class FileTableError(GRFError):
    """Malformed record inside the decompressed file table"""
    pass


class EntryNotFoundError(GRFError):

    def __init__(self, path):
        super().__init__(f"File not found within GRF: {path}")
        self.path = path


class ArchiveIOError(GRFError):
    """Reading the archive failed; the originating OSError, if any, is chained"""
    pass


class DecompressionError(GRFError):
    pass


class InvalidEntryError(GRFError):
    """Entry record is inconsistent (flags or sizes) and cannot be decoded"""
    pass


class LockPoisonedError(GRFError):

    def __init__(self, message="The lock that holds the archive handle is poisoned."):
        super().__init__(message)
