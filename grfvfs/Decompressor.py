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

import zlib

from grfvfs.Errors import DecompressionError, InvalidEntryError


def hasZlibHeader(data) -> bool:
    """True if data starts with a valid zlib (RFC 1950) header using deflate"""
    if len(data) < 2:
        return False

    cmf, flg = data[0], data[1]
    return (cmf & 0x0f) == 8 and (cmf >> 4) <= 7 and ((cmf << 8) | flg) % 31 == 0


def inflate(data, expectedSize: int, allowTrailing: bool = False) -> bytes:
    """
    Inflate a zlib or raw deflate stream to exactly expectedSize bytes.

    Args:
        data: Compressed bytes (zlib wrapper detected from the header)
        expectedSize: Declared uncompressed size
        allowTrailing: Keep the first expectedSize bytes of a longer result instead of failing

    Raises:
        DecompressionError: Stream is malformed, or produced a different size
    """
    if expectedSize == 0:
        return b''

    wbits = zlib.MAX_WBITS if hasZlibHeader(data) else -zlib.MAX_WBITS
    decompressor = zlib.decompressobj(wbits)

    try:
        # One extra byte is enough to tell an overlong stream from an exact one.
        out = decompressor.decompress(data, expectedSize + 1)
        if len(out) < expectedSize and not decompressor.unconsumed_tail:
            out += decompressor.flush()
    except zlib.error as e:
        raise DecompressionError(f"Corrupt deflate stream: {e}") from e

    if len(out) < expectedSize:
        raise DecompressionError(f"Deflate stream ended after {len(out)} bytes, expected {expectedSize}")

    if len(out) > expectedSize:
        if not allowTrailing:
            raise DecompressionError(f"Deflate stream is longer than the declared {expectedSize} bytes")
        out = out[:expectedSize]

    return out


def decompressEntry(entry, data) -> bytes:
    """
    Turn a decrypted entry payload into its uncompressed bytes.

    Alignment padding past compressedLength is dropped first. A payload whose
    compressed and uncompressed lengths match and which carries no zlib header is
    stored as-is.
    """
    if entry.uncompressedLength == 0:
        return b''

    payload = bytes(data[:entry.compressedLength])
    if len(payload) != entry.compressedLength:
        raise InvalidEntryError(
            f"Entry {entry.filename} declares {entry.compressedLength} compressed bytes "
            f"but only {len(payload)} are stored"
        )

    if entry.compressedLength == entry.uncompressedLength and not hasZlibHeader(payload):
        return payload

    return inflate(payload, entry.uncompressedLength)
