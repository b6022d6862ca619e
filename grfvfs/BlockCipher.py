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
Legacy GRF block cipher.

The archive format protects payloads with a reduced DES: the standard initial and
final permutations around a single, key-less Feistel round. Because that round only
XORs the left half with a function of the right half, fullDecode() is its own
inverse. shuffleDecode() is a cheap byte reordering applied to some of the blocks
that fullDecode() skips.

Both functions are pure and operate on exactly one 8-byte block.
"""

BLOCK_SIZE = 8

BIT_MASK_TABLE = (0x80, 0x40, 0x20, 0x10, 0x08, 0x04, 0x02, 0x01)

# Tables use 1-based, MSB-first bit numbers: output bit n is input bit table[n] - 1.
INITIAL_PERMUTATION_TABLE = (
    58, 50, 42, 34, 26, 18, 10, 2,
    60, 52, 44, 36, 28, 20, 12, 4,
    62, 54, 46, 38, 30, 22, 14, 6,
    64, 56, 48, 40, 32, 24, 16, 8,
    57, 49, 41, 33, 25, 17, 9, 1,
    59, 51, 43, 35, 27, 19, 11, 3,
    61, 53, 45, 37, 29, 21, 13, 5,
    63, 55, 47, 39, 31, 23, 15, 7,
)

FINAL_PERMUTATION_TABLE = (
    40, 8, 48, 16, 56, 24, 64, 32,
    39, 7, 47, 15, 55, 23, 63, 31,
    38, 6, 46, 14, 54, 22, 62, 30,
    37, 5, 45, 13, 53, 21, 61, 29,
    36, 4, 44, 12, 52, 20, 60, 28,
    35, 3, 43, 11, 51, 19, 59, 27,
    34, 2, 42, 10, 50, 18, 58, 26,
    33, 1, 41, 9, 49, 17, 57, 25,
)

TRANSPOSITION_TABLE = (
    16, 7, 20, 21,
    29, 12, 28, 17,
    1, 15, 23, 26,
    5, 18, 31, 10,
    2, 8, 24, 14,
    32, 27, 3, 9,
    19, 13, 30, 6,
    22, 11, 4, 25,
)

# Pairs of DES S-boxes indexed directly by the 6-bit group:
# high nibble from S(2n + 1), low nibble from S(2n + 2).
SUBSTITUTION_BOX_TABLE = (
    (
        0xef, 0x03, 0x41, 0xfd, 0xd8, 0x74, 0x1e, 0x47, 0x26, 0xef, 0xfb, 0x22, 0xb3, 0xd8, 0x84, 0x1e,
        0x39, 0xac, 0xa7, 0x60, 0x62, 0xc1, 0xcd, 0xba, 0x5c, 0x96, 0x90, 0x59, 0x05, 0x3b, 0x7a, 0x85,
        0x40, 0xfd, 0x1e, 0xc8, 0xe7, 0x8a, 0x8b, 0x21, 0xda, 0x43, 0x64, 0x9f, 0x2d, 0x14, 0xb1, 0x72,
        0xf5, 0x5b, 0xc8, 0xb6, 0x9c, 0x37, 0x76, 0xec, 0x39, 0xa0, 0xa3, 0x05, 0x52, 0x6e, 0x0f, 0xd9,
    ),
    (
        0xa7, 0xdd, 0x0d, 0x78, 0x9e, 0x0b, 0xe3, 0x95, 0x60, 0x36, 0x36, 0x4f, 0xf9, 0x60, 0x5a, 0xa3,
        0x11, 0x24, 0xd2, 0x87, 0xc8, 0x52, 0x75, 0xec, 0xbb, 0xc1, 0x4c, 0xba, 0x24, 0xfe, 0x8f, 0x19,
        0xda, 0x13, 0x66, 0xaf, 0x49, 0xd0, 0x90, 0x06, 0x8c, 0x6a, 0xfb, 0x91, 0x37, 0x8d, 0x0d, 0x78,
        0xbf, 0x49, 0x11, 0xf4, 0x23, 0xe5, 0xce, 0x3b, 0x55, 0xbc, 0xa2, 0x57, 0xe8, 0x22, 0x74, 0xce,
    ),
    (
        0x2c, 0xea, 0xc1, 0xbf, 0x4a, 0x24, 0x1f, 0xc2, 0x79, 0x47, 0xa2, 0x7c, 0xb6, 0xd9, 0x68, 0x15,
        0x80, 0x56, 0x5d, 0x01, 0x33, 0xfd, 0xf4, 0xae, 0xde, 0x30, 0x07, 0x9b, 0xe5, 0x83, 0x9b, 0x68,
        0x49, 0xb4, 0x2e, 0x83, 0x1f, 0xc2, 0xb5, 0x7c, 0xa2, 0x19, 0xd8, 0xe5, 0x7c, 0x2f, 0x83, 0xda,
        0xf7, 0x6b, 0x90, 0xfe, 0xc4, 0x01, 0x5a, 0x97, 0x61, 0xa6, 0x3d, 0x40, 0x0b, 0x58, 0xe6, 0x3d,
    ),
    (
        0x4d, 0xd1, 0xb2, 0x0f, 0x28, 0xbd, 0xe4, 0x78, 0xf6, 0x4a, 0x0f, 0x93, 0x8b, 0x17, 0xd1, 0xa4,
        0x3a, 0xec, 0xc9, 0x35, 0x93, 0x56, 0x7e, 0xcb, 0x55, 0x20, 0xa0, 0xfe, 0x6c, 0x89, 0x17, 0x62,
        0x17, 0x62, 0x4b, 0xb1, 0xb4, 0xde, 0xd1, 0x87, 0xc9, 0x14, 0x3c, 0x4a, 0x7e, 0xa8, 0xe2, 0x7d,
        0xa0, 0x9f, 0xf6, 0x5c, 0x6a, 0x09, 0x8d, 0xf0, 0x0f, 0xe3, 0x53, 0x25, 0x95, 0x36, 0x28, 0xcb,
    ),
)

SHUFFLE_ORDER = (3, 4, 6, 0, 1, 2, 5)

# Applied to the last byte of a shuffled block; every pair swaps both ways.
SHUFFLE_SUBSTITUTION = {
    0x00: 0x2b, 0x2b: 0x00,
    0x01: 0x68, 0x68: 0x01,
    0x48: 0x77, 0x77: 0x48,
    0x60: 0xff, 0xff: 0x60,
    0x6c: 0x80, 0x80: 0x6c,
    0xb9: 0xc0, 0xc0: 0xb9,
    0xeb: 0xfe, 0xfe: 0xeb,
}


def _buildPermutationLookup(table):
    """
    For each source byte position and value, the output bits that byte sets.

    A permutation then costs one OR per input byte instead of one test per bit.
    """
    width = len(table)
    lookup = [[0] * 256 for _ in range(width // 8)]

    for lop, source in enumerate(table):
        prm = source - 1
        outBit = 1 << (width - 1 - lop)
        mask = BIT_MASK_TABLE[prm & 7]
        row = lookup[prm >> 3]
        for value in range(256):
            if value & mask:
                row[value] |= outBit

    return tuple(tuple(row) for row in lookup)


_INITIAL_PERMUTATION = _buildPermutationLookup(INITIAL_PERMUTATION_TABLE)
_FINAL_PERMUTATION = _buildPermutationLookup(FINAL_PERMUTATION_TABLE)
_TRANSPOSITION = _buildPermutationLookup(TRANSPOSITION_TABLE)


def _checkBlock(block):
    if len(block) != BLOCK_SIZE:
        raise ValueError(f"Cipher blocks are {BLOCK_SIZE} bytes long, got {len(block)}")


def _permute(data, lookup) -> bytes:
    value = 0
    for row, byte in zip(lookup, data):
        value |= row[byte]
    return value.to_bytes(len(lookup), 'big')


def _expand(right) -> bytes:
    """Spread the 32-bit right half over eight 6-bit S-box indexes"""
    r0, r1, r2, r3 = right
    return bytes((
        ((r3 << 5) | (r0 >> 3)) & 0x3f,
        ((r0 << 1) | (r1 >> 7)) & 0x3f,
        ((r0 << 5) | (r1 >> 3)) & 0x3f,
        ((r1 << 1) | (r2 >> 7)) & 0x3f,
        ((r1 << 5) | (r2 >> 3)) & 0x3f,
        ((r2 << 1) | (r3 >> 7)) & 0x3f,
        ((r2 << 5) | (r3 >> 3)) & 0x3f,
        ((r3 << 1) | (r0 >> 7)) & 0x3f,
    ))


def _substitute(expanded) -> bytes:
    return bytes(
        (box[expanded[index * 2]] & 0xf0) | (box[expanded[index * 2 + 1]] & 0x0f)
        for index, box in enumerate(SUBSTITUTION_BOX_TABLE)
    )


def _roundFunction(block) -> bytes:
    right = block[4:]
    mixed = _permute(_substitute(_expand(right)), _TRANSPOSITION)
    return bytes(left ^ key for left, key in zip(block[:4], mixed)) + bytes(right)


def fullDecode(block) -> bytes:
    """Run the complete legacy round over one 8-byte block."""
    _checkBlock(block)
    return _permute(_roundFunction(_permute(block, _INITIAL_PERMUTATION)), _FINAL_PERMUTATION)


def shuffleDecode(block) -> bytes:
    """Undo the byte shuffle applied to lightly protected blocks."""
    _checkBlock(block)
    last = block[7]
    return bytes(block[index] for index in SHUFFLE_ORDER) + bytes((SHUFFLE_SUBSTITUTION.get(last, last),))
