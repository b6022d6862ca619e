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

import os
import sys

import bitmath
import chardet

from grfvfs.Kernel import getLogger

ONE_KB = bitmath.KiB(1).bytes
ONE_MB = bitmath.MiB(1).bytes
ONE_GB = bitmath.GiB(1).bytes
ONE_TB = bitmath.TiB(1).bytes

logger = getLogger(__name__)


def decodeText(raw, encoding, detect=False, confidence=0.5):
    """
    Decode bytes from a legacy code page.

    @param raw Bytes to decode.
    @param encoding Expected encoding, tried first and strictly.
    @param detect Ask chardet for another encoding when the expected one fails.
    @param confidence Minimum chardet confidence for its guess to be tried.
    @return str.
    @raise UnicodeDecodeError When no candidate encoding decodes the bytes.
    """
    try:
        return raw.decode(encoding)
    except UnicodeDecodeError as e:
        if not detect:
            raise

        result = chardet.detect(raw)
        guess = result.get('encoding')
        if not guess or (result.get('confidence') or 0) < confidence:
            raise

        logger.debug(f"Decoding {raw!r} as {guess} (confidence {result['confidence']:.2f}) instead of {encoding}")
        try:
            return raw.decode(guess)
        except (UnicodeDecodeError, LookupError):
            raise e


# Output is often piped into other tools, so always flush.
def flushPrint(text):
    try:
        print(text, flush=True)
        return
    except UnicodeEncodeError as e:
        # Korean archive paths on a console that cannot show them.
        logger.debug(f"Console cannot encode output ({sys.stdout.encoding}): {e}")

    stream = getattr(sys.stdout, 'buffer', None)
    if stream is None:
        encoding = sys.stdout.encoding or 'ascii'
        print(text.encode(encoding, errors='replace').decode(encoding), flush=True)
    else:
        stream.write(text.encode('utf-8', errors='replace') + b'\n')
        stream.flush()


def formatSize(size, decimal=None, plural=None):
    """
    Human readable SI size: '512 Bytes', '3M', '1.5G'.

    Args:
        size: Number of bytes
        decimal: Digits after the point (default grows with the unit: 0 below 1G, 1 below 1T, then 2)
        plural: Plural byte unit (default only up to one KiB)
    """
    if decimal is None:
        decimal = 0 if size < ONE_GB else 1 if size < ONE_TB else 2
    if plural is None:
        plural = size <= ONE_KB

    unit = 'unit_plural' if plural else 'unit'
    text = bitmath.Byte(size).best_prefix(system=bitmath.SI).format('{value:.%df}{%s}' % (decimal, unit))

    if text.endswith(('Byte', 'Bytes')):
        return text.replace('Byte', ' Byte')

    # kB -> K, MB -> M, ...
    return text.replace('B', '').upper()


def sendException(logger, e, action=None, errorPrefix="Error"):
    """
    Report an error to the user and log it with its traceback.

    Re-raises exceptions when RAISE_EXCEPTION=True, to debug the command line.
    """
    if e is None:
        logger.error(f'sendException called without an error: {errorPrefix=}')
    else:
        flushPrint(f'{errorPrefix}: {e}' if errorPrefix else f'{e}')

    if action:
        flushPrint(action)

    logger.debug(f'{errorPrefix}: {e}', exc_info=isinstance(e, BaseException))

    if isinstance(e, BaseException) and os.getenv('RAISE_EXCEPTION', 'False') == 'True':
        raise e


def getEnv(envVar, default):
    """Environment variable converted to the type of default; default when unset or unparsable"""
    value = os.getenv(envVar)
    if value is None or default is None:
        return value if value is not None else default

    try:
        if isinstance(default, bool):
            return value == "True"
        return type(default)(value)
    except (ValueError, TypeError):
        return default
