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
import signal

from grfvfs.Kernel import getLogger
from grfvfs.Errors import GRFError
from grfvfs.CLI import configureCLIParser, configureLogging, processArgumentsAndCommands
from grfvfs.Utils import flushPrint, sendException

logger = getLogger(__name__)


def setupGracefulShutdown():
    """Setup signal handlers for graceful shutdown on multiple Ctrl+C"""
    context = {'shutdownInProgress': False}

    def signalHandler(signum, frame):
        if context['shutdownInProgress']:
            # Second Ctrl+C - force immediate exit without cleanup messages
            os._exit(0)
        else:
            context['shutdownInProgress'] = True
            raise KeyboardInterrupt()

    signal.signal(signal.SIGINT, signalHandler)


def runCLIMain(argv=None):
    parser = configureCLIParser()
    args = parser.parse_args(argv)

    configureLogging(args.log_level)

    try:
        return processArgumentsAndCommands(args)
    except GRFError as e:
        sendException(logger, e, errorPrefix=f"Failed to read {args.archive}")
        return 1


def main(argv=None):
    """The main entry point of the grfvfs command"""
    try:
        return runCLIMain(argv)
    except KeyboardInterrupt:
        flushPrint('\nExiting on user request (Ctrl+C)...')
        return 0 # Return success code for clean exit


if __name__ == '__main__':
    setupGracefulShutdown()
    try:
        exitCode = main()
        sys.exit(exitCode or 0)
    except BrokenPipeError:
        # Output piped into head/less that exited early.
        sys.exit(0)
    except Exception as e:
        sendException(logger, e)
        sys.exit(1)
