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
import logging
import threading

# Error reporting stays off unless GRF_SENTRY_DSN is set; nothing is sent by default.
import sentry_sdk

from enum import Enum

from signalslot import Signal

from sentry_sdk.integrations.logging import SentryHandler, LoggingIntegration
from sentry_sdk.integrations import atexit as sentryAtexit

PUBLIC_VERSION = '1.0.0'

CONSOLE_LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
SENTRY_LOG_FORMAT = '%(asctime)s grfvfs[%(version)s] %(name)s: %(message)s'

LOG_LEVEL_MAPPING = {name: getattr(logging, name) for name in ('DEBUG', 'INFO', 'WARNING', 'ERROR')}


def configureGlobalLogLevel(logLevel):
    """
    Set the root logger level; every console handler follows it.

    A console handler is installed when the root logger has none yet.
    """
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logLevel)

    if not rootLogger.handlers:
        rootLogger.addHandler(logging.StreamHandler())

    formatter = logging.Formatter(CONSOLE_LOG_FORMAT)
    for handler in rootLogger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, SentryHandler):
            handler.setLevel(logLevel)
            handler.setFormatter(formatter)


_envLogLevel = (os.getenv('GRF_LOGGING_LEVEL') or '').upper()
if _envLogLevel in LOG_LEVEL_MAPPING:
    configureGlobalLogLevel(LOG_LEVEL_MAPPING[_envLogLevel])


def initSentry(version=PUBLIC_VERSION):
    """
    Start sentry-sdk once per process when GRF_SENTRY_DSN is present.

    Returns:
        bool: True if error reporting is active
    """
    if sentry_sdk.get_client().is_active():
        return True

    sentryDsn = os.getenv('GRF_SENTRY_DSN')
    if not sentryDsn:
        return False

    # Drop the "sentry is attempting to send pending events" notice at exit.
    sentryAtexit.default_callback = lambda pending, timeout: None

    sentry_sdk.init(
        dsn=sentryDsn,
        release=f'grfvfs@{version}',
        default_integrations=False,
        integrations=[
            LoggingIntegration(),
            sentryAtexit.AtexitIntegration(),
        ],
    )
    return True


def getLogger(name, version=PUBLIC_VERSION):
    """
    Module logger with a Sentry handler attached, wrapped so records carry the version.

    Args:
        name: Logger name, usually __name__
        version: Version string attached to every record
    """
    logger = logging.getLogger(name)

    try:
        initSentry(version)
    except Exception as e:
        logger.warning(f"Failed to initialize Sentry: {e}")
        return logger

    if not any(isinstance(handler, SentryHandler) for handler in logger.handlers):
        sentryHandler = SentryHandler()
        sentryHandler.setFormatter(logging.Formatter(SENTRY_LOG_FORMAT))
        logger.addHandler(sentryHandler)

    return logging.LoggerAdapter(logger, {'version': version or 'unknown'})


class Singleton:
    """
    Thread-safe singleton base. Subclasses do their setup in initialize(), which
    runs for the first construction only.
    """

    _instances = {}
    _lock = threading.RLock()

    def __new__(cls, *args, **kwargs):
        with cls._lock:
            instance = cls._instances.get(cls)
            if instance is None:
                instance = cls._instances[cls] = super().__new__(cls)
        return instance

    def __init__(self, *args, **kwargs):
        with self._lock:
            if not getattr(self, '_initialized', False):
                self.initialize(*args, **kwargs)
                self._initialized = True

    def initialize(self, *args, **kwargs):
        pass

    @classmethod
    def getInstance(cls):
        instance = cls._instances.get(cls)
        return instance if instance is not None else cls()


class EventTiming(Enum):
    BEFORE = "BEFORE"
    AFTER = "AFTER"


class EventService(Singleton):
    """
    Archive event bus for external layers (caches, indexers, debuggers).

    Every registered event key owns one signalslot Signal per EventTiming.
    Observers are called with keyword arguments only, so they must accept **kwargs.
    """

    def initialize(self):
        self.signals = {}

    def reset(self):
        """Drop every observer but keep the registered events. Meant for test suites."""
        self.signals = {event: self._createSignals() for event in self.signals}

    @staticmethod
    def _createSignals():
        return {timing: Signal() for timing in EventTiming}

    @staticmethod
    def normalizeTiming(timing):
        """EventTiming for an enum member or its case-insensitive name; None stays None"""
        if timing is None or isinstance(timing, EventTiming):
            return timing

        if isinstance(timing, str):
            try:
                return EventTiming(timing.upper())
            except ValueError:
                raise ValueError(f"Invalid timing value: '{timing}'. Must be 'BEFORE' or 'AFTER'.") from None

        raise ValueError(f"Timing must be EventTiming, str or None, got {type(timing).__name__}")

    def isRegistered(self, event):
        return event in self.signals

    def register(self, event):
        if self.isRegistered(event):
            return False
        self.signals[event] = self._createSignals()
        return True

    def unregister(self, event):
        return self.signals.pop(event, None) is not None

    def trigger(self, event, timing=None, **kwargs):
        """
        Emit an event. With no timing, BEFORE observers run first and then AFTER ones.
        Unregistered events are ignored.
        """
        timing = self.normalizeTiming(timing)

        signals = self.signals.get(event)
        if signals is None:
            return

        for phase in EventTiming:
            if timing in (phase, None):
                signals[phase].emit(**kwargs)

    def subscribe(self, event, observer, timing=EventTiming.AFTER):
        if not self.isRegistered(event):
            raise KeyError(f"You must register event '{event}' first.")

        timing = self.normalizeTiming(timing)
        if timing is None:
            raise ValueError("Timing must be EventTiming.BEFORE or EventTiming.AFTER.")

        signal = self.signals[event][timing]
        if observer not in signal._slots:
            signal.connect(observer)

    def unsubscribe(self, event, observer, timing=None):
        signals = self.signals.get(event)
        if signals is None:
            return

        timing = self.normalizeTiming(timing)
        for phase, signal in signals.items():
            if timing in (phase, None) and observer in signal._slots:
                signal.disconnect(observer)


class Event:
    """Handle on one event key of the EventService"""

    def __init__(self, key):
        self.key = key
        self.eventService = EventService.getInstance()

    def subscribe(self, observer, timing=EventTiming.AFTER):
        return self.eventService.subscribe(self.key, observer, timing=timing)

    def unsubscribe(self, observer, timing=None):
        return self.eventService.unsubscribe(self.key, observer, timing=timing)

    def trigger(self, timing=None, **kwargs):
        return self.eventService.trigger(self.key, timing=timing, **kwargs)


# Event keys: RESTful resource + /[action] (create, get, delete)
class GRFEvent:
    archiveOpen = Event('/archive/create')
    archiveClose = Event('/archive/delete')

    fileRead = Event('/archive/file/get')


for _event in (GRFEvent.archiveOpen, GRFEvent.archiveClose, GRFEvent.fileRead):
    EventService.getInstance().register(_event.key)
