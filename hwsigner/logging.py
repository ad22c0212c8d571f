# Copyright (C) 2019 The Electrum developers
# Copyright (C) 2017 The hwsigner developers
# Distributed under the MIT software license, see the accompanying
# file LICENCE or http://www.opensource.org/licenses/mit-license.php

import copy
import datetime
import logging
import os
import pathlib
import platform
import sys
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .simple_config import SimpleConfig


# logger names (after the "hwsigner." prefix) printed in a shorter form
_SHORT_NAMES = (
    ("trezor.Manager", "trezor"),
    ("trezor.SigningLoop", "signing"),
)


def _short_name(name: str) -> str:
    if name.startswith("hwsigner."):
        name = name[len("hwsigner."):]
    for prefix, short in _SHORT_NAMES:
        if name.startswith(prefix):
            return short + name[len(prefix):]
    return name


class LogFormatterForFiles(logging.Formatter):

    def formatTime(self, record, datefmt=None):
        # ISO 8601, UTC
        date = datetime.datetime.fromtimestamp(record.created, tz=datetime.timezone.utc)
        return date.strftime(datefmt or "%Y%m%dT%H%M%S.%fZ")

    def format(self, record):
        record = copy.copy(record)
        record.name = _short_name(record.name)
        return super().format(record)


class LogFormatterForConsole(LogFormatterForFiles):

    def format(self, record):
        text = super().format(record)
        shortcut = getattr(record, 'custom_shortcut', None)
        if shortcut:
            # "D | trezor | ..." -> "D/T | trezor | ..."
            text = f"{text[:1]}/{shortcut}{text[1:]}"
        return text


file_formatter = LogFormatterForFiles(fmt="%(asctime)22s | %(levelname)8s | %(name)s | %(message)s")
console_formatter = LogFormatterForConsole(fmt="%(levelname).1s | %(name)s | %(message)s")


class ShortcutFilter(logging.Filter):
    """Select records by the LOGGING_SHORTCUT of the object that logged them.

    "TS" lets only those shortcuts through, "^TS" everything except them.
    Errors always pass.
    """

    def __init__(self, shortcuts: str):
        super().__init__()
        self.exclude = shortcuts.startswith('^')
        self.shortcuts = set(shortcuts.lstrip('^'))

    def filter(self, record):
        if record.levelno >= logging.ERROR:
            return True
        shortcut = getattr(record, 'custom_shortcut', None)
        if shortcut is None:
            return self.exclude
        return (shortcut in self.shortcuts) != self.exclude


class _ShortcutInjector(logging.Filter):

    def __init__(self, shortcut: str):
        super().__init__()
        self.shortcut = shortcut

    def filter(self, record):
        record.custom_shortcut = self.shortcut
        return True


def _apply_log_levels(verbosity: Optional[str]) -> None:
    """verbosity is "*" or a comma separated list of LEVEL and NAME=LEVEL items,
    e.g. "info,transport=debug".
    """
    if not verbosity or verbosity == '*':
        return
    for item in verbosity.split(','):
        if not item:
            continue
        name, sep, level = item.rpartition('=')
        if '=' in name:
            raise ValueError(f"invalid log filter: {item}")
        logger = get_logger(name) if sep else hwsigner_logger
        logger.setLevel(level.upper())


_stderr_handler = None  # type: Optional[logging.Handler]
def _configure_stderr_logging(*, verbosity=None, verbosity_shortcuts=None):
    global _stderr_handler
    if _stderr_handler is not None:
        _logger.warning("stderr handler already exists")
        return
    _stderr_handler = logging.StreamHandler(sys.stderr)
    _stderr_handler.setFormatter(console_formatter)
    root_logger.addHandler(_stderr_handler)
    if not verbosity and not verbosity_shortcuts:
        _stderr_handler.setLevel(logging.WARNING)
        return
    _stderr_handler.setLevel(logging.DEBUG)
    _apply_log_levels(verbosity)
    if verbosity_shortcuts:
        _stderr_handler.addFilter(ShortcutFilter(verbosity_shortcuts))


_logfile_path = None  # type: Optional[pathlib.Path]
def _configure_file_logging(log_directory: pathlib.Path, *, keep: int = 10):
    global _logfile_path
    assert _logfile_path is None, 'file logging already initialized'
    log_directory.mkdir(exist_ok=True)
    for old_log in sorted(log_directory.glob("hwsigner_log_*.log"), reverse=True)[keep:]:
        try:
            old_log.unlink()
        except OSError as e:
            _logger.warning(f"cannot delete old logfile: {e}")
    timestamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    _logfile_path = log_directory / f"hwsigner_log_{timestamp}_{os.getpid()}.log"
    file_handler = logging.FileHandler(_logfile_path, encoding='utf-8')
    file_handler.setFormatter(file_formatter)
    file_handler.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)


# handlers hang off the root logger, levels are set on ours
root_logger = logging.getLogger()
root_logger.setLevel(logging.WARNING)

hwsigner_logger = logging.getLogger("hwsigner")
hwsigner_logger.setLevel(logging.DEBUG)


def get_logger(name: str) -> logging.Logger:
    if name.startswith("hwsigner."):
        name = name[len("hwsigner."):]
    return hwsigner_logger.getChild(name)


_logger = get_logger(__name__)
_logger.setLevel(logging.INFO)


class Logger:
    """Gives instances a `self.logger` named after their class."""

    # Single character used by shortcut filtering (-V). Need not be unique.
    LOGGING_SHORTCUT = None  # type: Optional[str]

    def __init__(self):
        cls = self.__class__
        name = f"{cls.__module__}.{cls.__name__}"
        diag_name = self.diagnostic_name()
        if diag_name:
            name += f".[{diag_name}]"
        self.logger = get_logger(name)
        if self.LOGGING_SHORTCUT:
            self.logger.addFilter(_ShortcutInjector(self.LOGGING_SHORTCUT))

    def diagnostic_name(self):
        return ''


def configure_logging(config: 'SimpleConfig', *, log_to_file: Optional[bool] = None) -> None:
    verbosity = config.VERBOSITY
    verbosity_shortcuts = config.VERBOSITY_SHORTCUTS
    _configure_stderr_logging(verbosity=verbosity, verbosity_shortcuts=verbosity_shortcuts)

    if log_to_file is None:
        log_to_file = config.LOG_TO_FILE
    if log_to_file:
        _configure_file_logging(pathlib.Path(config.path) / "logs")

    from .version import HWSIGNER_VERSION
    _logger.info(f"hwsigner {HWSIGNER_VERSION}, Python {platform.python_version()} on {platform.platform()}")
    _logger.info(f"log file {_logfile_path}, verbosity {verbosity!r}, shortcuts {verbosity_shortcuts!r}")
