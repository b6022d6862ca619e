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

import argparse
import json
import os
import sys
import logging
import logging.config

from grfvfs.Archive import Archive
from grfvfs.Errors import EntryNotFoundError, GRFError, LockPoisonedError
from grfvfs.FileTable import normalizePath
from grfvfs.Kernel import PUBLIC_VERSION, getLogger, configureGlobalLogLevel, LOG_LEVEL_MAPPING
from grfvfs.Utils import flushPrint, formatSize, getEnv

logger = getLogger(__name__)


def configureLogging(logLevel):
    """Configure logging level for the application using Kernel's centralized configuration or config file

    Priority order:
    1. logLevel parameter (from --log-level CLI argument)
    2. GRF_LOGGING_LEVEL environment variable
    3. Default to None (no configuration change)

    Both can be a logging level name (DEBUG, INFO, WARNING, ERROR)
    or a path to a logging configuration JSON file.
    """

    def suppressNoisyLogger():
        logging.getLogger('sentry_sdk').setLevel(logging.INFO)
        logging.getLogger('chardet').setLevel(logging.INFO)

    if logLevel is None:
        logLevel = getEnv('GRF_LOGGING_LEVEL', None)

    if logLevel is None:
        suppressNoisyLogger()
        return None

    if os.path.isfile(logLevel):
        try:
            with open(logLevel, 'r') as configFile:
                configDict = json.load(configFile)

            logging.config.dictConfig(configDict)
            logger.info(f"Logging configured from file: {logLevel}")
            suppressNoisyLogger()
            return logLevel

        except (json.JSONDecodeError, ValueError, KeyError) as e:
            flushPrint(f"Failed to load logging config from {logLevel}: {e}")
            flushPrint("Falling back to default logging level configuration")

    if logLevel.upper() in LOG_LEVEL_MAPPING:
        configureGlobalLogLevel(LOG_LEVEL_MAPPING[logLevel.upper()])
        logger.info(f"Logging level set to {logLevel}")
    else:
        logger.warning(f"Invalid logging level '{logLevel}', using WARNING as default")
        configureGlobalLogLevel(logging.WARNING)

    suppressNoisyLogger()

    return logLevel


def configureCLIParser():
    """Configure the parser: global options, the archive path, then one command"""
    parser = argparse.ArgumentParser(prog='grfvfs', description='Read-only access to GRF archives.')
    parser.add_argument('--version', action='version', version=f'%(prog)s {PUBLIC_VERSION}')
    parser.add_argument(
        '--log-level', default=None, help='Logging level (DEBUG, INFO, WARNING, ERROR) or a logging JSON config file'
    )
    parser.add_argument('--encoding', default=None, help='Code page of stored filenames (default: cp949)')
    parser.add_argument(
        '--detect-encoding', action='store_true', default=None, help='Guess the code page of undecodable filenames'
    )
    parser.add_argument('archive', help='GRF archive to read')

    commands = parser.add_subparsers(dest='command', metavar='COMMAND')
    commands.required = True

    commands.add_parser('info', help='Show header and table statistics')

    listParser = commands.add_parser('list', help='List files below a directory')
    listParser.add_argument('path', nargs='?', default='', help='Directory or file inside the archive')
    listParser.add_argument('--ext', action='append', default=[], help='Only files with this extension (repeatable)')
    listParser.add_argument('-l', '--long', action='store_true', help='Show sizes and flags')

    catParser = commands.add_parser('cat', help='Write a decoded file to stdout')
    catParser.add_argument('path', help='File inside the archive')

    extractParser = commands.add_parser('extract', help='Extract files to a directory')
    extractParser.add_argument('paths', nargs='*', help='Files or directories to extract (default: everything)')
    extractParser.add_argument('-o', '--output', default='.', help='Destination directory')
    extractParser.add_argument('--ext', action='append', default=[], help='Only files with this extension (repeatable)')

    checkParser = commands.add_parser('check', help='Read every file and report the ones that fail')
    checkParser.add_argument('--ext', action='append', default=[], help='Only files with this extension (repeatable)')

    return parser


def _matchesExtensions(filename, extensions):
    if not extensions:
        return True
    lowered = filename.lower()
    return any(lowered.endswith('.' + ext.lower().lstrip('.')) for ext in extensions)


def selectFiles(archive, paths=None, extensions=None):
    """Files at or below each of paths (everything when paths is empty), in table order"""
    prefixes = [normalizePath(path) for path in (paths or [''])]

    for path in paths or []:
        if not archive.exists(path):
            raise EntryNotFoundError(path)

    for filename in archive.iterFilenames():
        key = normalizePath(filename)
        if not any(not prefix or key == prefix or key.startswith(prefix + '/') for prefix in prefixes):
            continue
        if _matchesExtensions(filename, extensions):
            yield filename


def runInfo(archive):
    header = archive.header
    entries = archive.fileTable
    storedBytes = sum(entry.compressedLengthAligned for entry in entries.iterFiles())
    totalBytes = sum(entry.uncompressedLength for entry in entries.iterFiles())
    encrypted = sum(1 for entry in entries.iterFiles() if entry.isEncrypted)

    flushPrint(f"Archive:     {archive.path} ({formatSize(archive.size)})")
    flushPrint(f"Version:     {header.version} ({header.version.code})")
    flushPrint(f"Records:     {len(entries)}")
    flushPrint(f"Files:       {len(archive)} ({encrypted} encrypted)")
    flushPrint(f"Stored size: {formatSize(storedBytes)}")
    flushPrint(f"Real size:   {formatSize(totalBytes)}")
    return 0


def runList(archive, path='', extensions=None, long=False):
    for filename in selectFiles(archive, [path] if path else None, extensions):
        if long:
            entry = archive.getEntry(filename)
            flushPrint(f"{formatSize(entry.uncompressedLength):>12}  {entry.describeFlags():<28}  {filename}")
        else:
            flushPrint(filename)
    return 0


def runCat(archive, path, output=None):
    output = output or sys.stdout.buffer
    output.write(archive.readFile(path))
    output.flush()
    return 0


def resolveTarget(outputDir, filename):
    """Destination of filename below outputDir, or None if it would escape it"""
    root = os.path.realpath(outputDir)
    target = os.path.realpath(os.path.join(root, *filename.split('/')))
    if os.path.commonpath([root, target]) != root or target == root:
        return None
    return target


def runExtract(archive, paths, outputDir, extensions=None):
    extracted = 0
    failures = 0

    for filename in selectFiles(archive, paths, extensions):
        target = resolveTarget(outputDir, filename)
        if target is None:
            logger.warning(f"Refusing to extract {filename}: path escapes {outputDir}")
            failures += 1
            continue

        try:
            data = archive.readFile(filename)
        except GRFError as e:
            flushPrint(f"{filename}: {e}")
            failures += 1
            continue

        try:
            os.makedirs(os.path.dirname(target), exist_ok=True)
            with open(target, 'wb') as f:
                f.write(data)
        except OSError as e:
            flushPrint(f"{filename}: {e}")
            failures += 1
            continue
        extracted += 1

    flushPrint(f"Extracted {extracted} files to {outputDir}" + (f", {failures} failed" if failures else ""))
    return 1 if failures else 0


def runCheck(archive, extensions=None):
    checked = 0
    failures = 0

    for filename in selectFiles(archive, None, extensions):
        checked += 1
        try:
            archive.readFile(filename)
        except LockPoisonedError as e:
            # A poisoned handle fails every later read.
            flushPrint(f"{filename}: {e}")
            failures += 1
            break
        except GRFError as e:
            flushPrint(f"{filename}: {e}")
            failures += 1

    flushPrint(f"Checked {checked} files, {failures} failed")
    return 1 if failures else 0


def processArgumentsAndCommands(args):
    """Open the archive named in args and run the selected command; returns the exit code"""
    with Archive(args.archive, filenameEncoding=args.encoding, detectFilenameEncoding=args.detect_encoding) as archive:
        if args.command == 'info':
            return runInfo(archive)
        elif args.command == 'list':
            return runList(archive, args.path, args.ext, args.long)
        elif args.command == 'cat':
            return runCat(archive, args.path)
        elif args.command == 'extract':
            return runExtract(archive, args.paths, args.output, args.ext)
        elif args.command == 'check':
            return runCheck(archive, args.ext)

    raise ValueError(f"Unknown command: {args.command}")
