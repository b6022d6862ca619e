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

from grfvfs.Kernel import Singleton, getLogger
from grfvfs.Utils import getEnv

# Fixed archive layout
GRF_SIGNATURE = b'Master of Magic'
HEADER_SIZE = 16 + 14 + 4 + 4 + 4 + 4

# (padding, major, minor, build); 0x200 is the only table layout handled here.
SUPPORTED_VERSIONS = frozenset({
    (0, 2, 0, 0),
})

# Korean clients store names in CP949 (EUC-KR superset).
DEFAULT_FILENAME_ENCODING = getEnv('GRF_FILENAME_ENCODING', 'cp949')
DETECT_FILENAME_ENCODING = getEnv('GRF_DETECT_FILENAME_ENCODING', False)

logger = getLogger(__name__)


class SettingsGetter(Singleton):
    """Process-wide archive defaults; Archive instances may override them individually."""

    def initialize(
        self,
        filenameEncoding=DEFAULT_FILENAME_ENCODING,
        detectFilenameEncoding=DETECT_FILENAME_ENCODING,
        supportedVersions=SUPPORTED_VERSIONS,
    ):
        self._filenameEncoding = filenameEncoding
        self._detectFilenameEncoding = detectFilenameEncoding
        self._supportedVersions = frozenset(tuple(v) for v in supportedVersions)

        logger.debug(
            f"SettingsGetter initialized: encoding={filenameEncoding}, detect={detectFilenameEncoding}, "
            f"versions={sorted(self._supportedVersions)}"
        )

    @property
    def filenameEncoding(self):
        return self._filenameEncoding

    @property
    def detectFilenameEncoding(self):
        return self._detectFilenameEncoding

    @property
    def supportedVersions(self):
        return self._supportedVersions

    def isSupportedVersion(self, version):
        return tuple(version) in self._supportedVersions
