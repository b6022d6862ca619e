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
from unittest.mock import patch

from grfvfs.BlockCipher import fullDecode
from grfvfs.Decryptor import decryptBlocks, decryptEntry, getCycle
from grfvfs.Errors import InvalidEntryError
from grfvfs.FileTable import Entry, EntryFlag

from ..ArchiveTestBase import encryptBlocks, randomBytes


def makeEntry(flags, compressedLength=16, compressedLengthAligned=16):
    return Entry(
        filename='data/test.bin',
        compressedLength=compressedLength,
        compressedLengthAligned=compressedLengthAligned,
        uncompressedLength=compressedLength,
        flags=flags,
        offset=0,
    )


class CycleTest(unittest.TestCase):

    def testCycleFromDigitCount(self):
        cases = [(0, 3), (5, 3), (12, 3), (123, 4), (1234, 5), (12345, 14), (123456, 15), (1234567, 22)]
        for length, cycle in cases:
            with self.subTest(length=length):
                self.assertEqual(getCycle(length), cycle)


class DecryptBlocksTest(unittest.TestCase):
    """Schedule is observed through spies that record which blocks each primitive sees"""

    def runSchedule(self, blocks, unalignedLength, headerOnly, alignedLength=None):
        data = b''.join(bytes([index]) * 8 for index in range(blocks))
        fullCalls, shuffleCalls = [], []

        def fullSpy(block):
            fullCalls.append(block[0])
            return bytes(block)

        def shuffleSpy(block):
            shuffleCalls.append(block[0])
            return bytes(block)

        with patch('grfvfs.Decryptor.fullDecode', side_effect=fullSpy), \
                patch('grfvfs.Decryptor.shuffleDecode', side_effect=shuffleSpy):
            out = decryptBlocks(data, alignedLength or len(data), unalignedLength, headerOnly)

        self.assertEqual(out, data)
        return fullCalls, shuffleCalls

    def testMixedSchedule(self):
        fullCalls, shuffleCalls = self.runSchedule(40, 1234, headerOnly=False)
        self.assertEqual(fullCalls, list(range(20)) + [20, 25, 30, 35])
        self.assertEqual(shuffleCalls, [29, 38])

    def testHeaderOnlySchedule(self):
        fullCalls, shuffleCalls = self.runSchedule(40, 1234, headerOnly=True)
        self.assertEqual(fullCalls, list(range(20)))
        self.assertEqual(shuffleCalls, [])

    def testShortEntryIsFullyDecoded(self):
        fullCalls, shuffleCalls = self.runSchedule(5, 40, headerOnly=False)
        self.assertEqual(fullCalls, [0, 1, 2, 3, 4])
        self.assertEqual(shuffleCalls, [])

    def testHeaderRegionLimitedByAlignedLength(self):
        fullCalls, _ = self.runSchedule(12, 90, headerOnly=True, alignedLength=48)
        self.assertEqual(fullCalls, [0, 1, 2, 3, 4, 5])

    def testSmallCycle(self):
        fullCalls, shuffleCalls = self.runSchedule(40, 50, headerOnly=False)
        self.assertEqual(fullCalls, list(range(20)) + [21, 24, 27, 30, 33, 36, 39])
        self.assertEqual(shuffleCalls, [31])

    def testRoundTrip(self):
        for headerOnly in (True, False):
            for size in (8, 160, 400, 2048):
                plain = randomBytes(size, seed=size)
                with self.subTest(headerOnly=headerOnly, size=size):
                    encrypted = encryptBlocks(plain, size, size - 3, headerOnly)
                    self.assertEqual(decryptBlocks(encrypted, size, size - 3, headerOnly), plain)

    def testRejectsUnalignedData(self):
        with self.assertRaises(InvalidEntryError):
            decryptBlocks(bytes(12), 12, 12, headerOnly=False)

    def testEmptyData(self):
        self.assertEqual(decryptBlocks(b'', 0, 0, headerOnly=False), b'')


class DecryptEntryTest(unittest.TestCase):

    def testUnencryptedPassesThrough(self):
        data = randomBytes(16)
        self.assertEqual(decryptEntry(makeEntry(EntryFlag.FILE), data), data)

    def testHeaderOnlyEntry(self):
        data = randomBytes(16)
        entry = makeEntry(EntryFlag.FILE | EntryFlag.HEADER_ONLY_ENCRYPTION)
        self.assertEqual(decryptEntry(entry, data), fullDecode(data[:8]) + fullDecode(data[8:]))

    def testMixedEntry(self):
        data = randomBytes(16)
        entry = makeEntry(EntryFlag.FILE | EntryFlag.MIXED_ENCRYPTION)
        self.assertEqual(decryptEntry(entry, data), fullDecode(data[:8]) + fullDecode(data[8:]))

    def testBothFlagsRejected(self):
        entry = makeEntry(EntryFlag.FILE | EntryFlag.MIXED_ENCRYPTION | EntryFlag.HEADER_ONLY_ENCRYPTION)
        with self.assertRaises(InvalidEntryError):
            decryptEntry(entry, bytes(16))


if __name__ == '__main__':
    unittest.main()
