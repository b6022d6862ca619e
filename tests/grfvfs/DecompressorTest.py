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

import unittest
import zlib

from grfvfs.Decompressor import decompressEntry, hasZlibHeader, inflate
from grfvfs.Errors import DecompressionError, InvalidEntryError
from grfvfs.FileTable import Entry, EntryFlag

from ..ArchiveTestBase import alignTo, randomBytes


def rawDeflate(data):
    compressor = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


def makeEntry(payload, uncompressedLength):
    return Entry(
        filename='data/test.bin',
        compressedLength=len(payload),
        compressedLengthAligned=alignTo(len(payload)),
        uncompressedLength=uncompressedLength,
        flags=EntryFlag.FILE,
        offset=0,
    )


class InflateTest(unittest.TestCase):

    def setUp(self):
        self.data = b'The quick brown fox jumps over the lazy dog. ' * 20

    def testZlibStream(self):
        compressed = zlib.compress(self.data)
        self.assertTrue(hasZlibHeader(compressed))
        self.assertEqual(inflate(compressed, len(self.data)), self.data)

    def testRawDeflateStream(self):
        compressed = rawDeflate(self.data)
        self.assertEqual(inflate(compressed, len(self.data)), self.data)

    def testZeroSize(self):
        self.assertEqual(inflate(b'', 0), b'')
        self.assertEqual(inflate(b'garbage', 0), b'')

    def testShortStream(self):
        compressed = zlib.compress(self.data)
        with self.assertRaises(DecompressionError):
            inflate(compressed, len(self.data) + 5)

    def testTruncatedStream(self):
        compressed = zlib.compress(randomBytes(1000))
        with self.assertRaises(DecompressionError):
            inflate(compressed[:len(compressed) // 2], 1000)

    def testOverlongStream(self):
        compressed = zlib.compress(self.data)
        with self.assertRaises(DecompressionError):
            inflate(compressed, len(self.data) - 1)

    def testOverlongStreamAllowed(self):
        compressed = zlib.compress(self.data)
        self.assertEqual(inflate(compressed, 10, allowTrailing=True), self.data[:10])

    def testCorruptStream(self):
        with self.assertRaises(DecompressionError):
            inflate(b'\x78\x9c' + b'\xff' * 16, 100)


class ZlibHeaderTest(unittest.TestCase):

    def testHeaders(self):
        for level in range(10):
            with self.subTest(level=level):
                self.assertTrue(hasZlibHeader(zlib.compress(b'abc', level)))

        self.assertFalse(hasZlibHeader(b''))
        self.assertFalse(hasZlibHeader(b'\x78'))
        self.assertFalse(hasZlibHeader(b'plain text'))
        self.assertFalse(hasZlibHeader(b'\x78\x00'))


class DecompressEntryTest(unittest.TestCase):

    def testCompressedEntry(self):
        data = randomBytes(300)
        compressed = zlib.compress(data)
        padded = compressed + bytes(alignTo(len(compressed)) - len(compressed))
        self.assertEqual(decompressEntry(makeEntry(compressed, len(data)), padded), data)

    def testStoredEntry(self):
        data = b'plain stored payload'
        padded = data + bytes(alignTo(len(data)) - len(data))
        self.assertEqual(decompressEntry(makeEntry(data, len(data)), padded), data)

    def testEmptyEntry(self):
        self.assertEqual(decompressEntry(makeEntry(b'', 0), b''), b'')

    def testPayloadShorterThanDeclared(self):
        compressed = zlib.compress(b'abcdef' * 10)
        with self.assertRaises(InvalidEntryError):
            decompressEntry(makeEntry(compressed, 60), compressed[:-2])

    def testCorruptEntry(self):
        compressed = bytearray(zlib.compress(randomBytes(200)))
        compressed[2:12] = b'\xff' * 10
        with self.assertRaises(DecompressionError):
            decompressEntry(makeEntry(bytes(compressed), 200), bytes(compressed))


if __name__ == '__main__':
    unittest.main()
