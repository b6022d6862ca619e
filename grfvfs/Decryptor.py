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
Per-entry decryption policy.

Entries flagged for header-only encryption have their first 20 blocks run through
fullDecode(). Mixed encryption additionally decodes every `cycle`-th block of the
body and de-shuffles some of the blocks in between. The schedule below matches
the reference client block for block.
"""

from grfvfs.BlockCipher import BLOCK_SIZE, fullDecode, shuffleDecode
from grfvfs.Errors import InvalidEntryError
from grfvfs.Kernel import getLogger

HEADER_REGION_BLOCKS = 20
SHUFFLE_PERIOD = 7

logger = getLogger(__name__)


def getCycle(unalignedLength: int) -> int:
    """Full-decode period of the entry body, derived from the digit count of its length"""
    digits = len(str(unalignedLength)) if unalignedLength > 0 else 1

    if digits <= 2:
        return 3
    elif digits <= 4:
        return digits + 1
    elif digits <= 6:
        return digits + 9
    return digits + 15


def decryptBlocks(data, alignedLength: int, unalignedLength: int, headerOnly: bool) -> bytes:
    """
    Decrypt an entry payload.

    Args:
        data: Raw on-disk bytes, alignedLength long
        alignedLength: compressed_length_aligned of the entry
        unalignedLength: compressed_length of the entry
        headerOnly: True for HeaderOnlyEncryption, False for MixedEncryption

    Returns:
        bytes: Decrypted stream, same length as data

    Raises:
        InvalidEntryError: If data is not made of whole 8-byte blocks
    """
    if len(data) % BLOCK_SIZE != 0:
        raise InvalidEntryError(f"Encrypted payload of {len(data)} bytes is not {BLOCK_SIZE}-byte aligned")

    view = memoryview(data)
    headerLength = alignedLength // BLOCK_SIZE
    cycle = getCycle(unalignedLength)

    out = bytearray()
    j = 0
    for index in range(len(data) // BLOCK_SIZE):
        block = view[index * BLOCK_SIZE:(index + 1) * BLOCK_SIZE]

        if index < HEADER_REGION_BLOCKS and index < headerLength:
            out += fullDecode(block)
        elif headerOnly:
            out += block
        elif index % cycle == 0:
            out += fullDecode(block)
        else:
            if j == SHUFFLE_PERIOD:
                j = 0
                out += shuffleDecode(block)
            else:
                out += block
            j += 1

    return bytes(out)


def decryptEntry(entry, data) -> bytes:
    """Apply the decryption the entry flags ask for; unencrypted payloads pass through."""
    if entry.hasMixedEncryption and entry.hasHeaderOnlyEncryption:
        raise InvalidEntryError(f"Entry {entry.filename} has both encryption flags set ({entry.flags:#04x})")

    if entry.hasMixedEncryption or entry.hasHeaderOnlyEncryption:
        return decryptBlocks(
            data,
            entry.compressedLengthAligned,
            entry.compressedLength,
            headerOnly=entry.hasHeaderOnlyEncryption,
        )

    return bytes(data)
