import logging
import pathlib

import hwsigner.logging
from hwsigner.logging import (ShortcutFilter, _apply_log_levels, _configure_file_logging,
                              _short_name, console_formatter, get_logger)

from . import HwSignerTestCase


def make_record(name="hwsigner.trezor.Manager", level=logging.INFO, shortcut=None):
    record = logging.LogRecord(name, level, __file__, 1, "found %d devices", (2,), None)
    if shortcut is not None:
        record.custom_shortcut = shortcut
    return record


class TestNames(HwSignerTestCase):

    def test_short_name(self):
        self.assertEqual("trezor", _short_name("hwsigner.trezor.Manager"))
        self.assertEqual("signing.[0001:0005:00]", _short_name("hwsigner.trezor.SigningLoop.[0001:0005:00]"))
        self.assertEqual("transport", _short_name("hwsigner.transport"))
        self.assertEqual("other.module", _short_name("other.module"))

    def test_get_logger_is_under_package_logger(self):
        self.assertEqual("hwsigner.transport", get_logger("hwsigner.transport").name)
        self.assertEqual("hwsigner.transport", get_logger("transport").name)

    def test_console_format(self):
        self.assertEqual("I | trezor | found 2 devices", console_formatter.format(make_record()))
        self.assertEqual("I/T | trezor | found 2 devices",
                         console_formatter.format(make_record(shortcut='T')))


class TestShortcutFilter(HwSignerTestCase):

    def test_whitelist(self):
        filt = ShortcutFilter("TS")
        self.assertTrue(filt.filter(make_record(shortcut='T')))
        self.assertTrue(filt.filter(make_record(shortcut='S')))
        self.assertFalse(filt.filter(make_record(shortcut='C')))
        self.assertFalse(filt.filter(make_record()))

    def test_blacklist(self):
        filt = ShortcutFilter("^S")
        self.assertTrue(filt.filter(make_record(shortcut='T')))
        self.assertFalse(filt.filter(make_record(shortcut='S')))
        self.assertTrue(filt.filter(make_record()))

    def test_errors_always_pass(self):
        filt = ShortcutFilter("T")
        self.assertTrue(filt.filter(make_record(level=logging.ERROR, shortcut='S')))


class TestLogLevels(HwSignerTestCase):

    def setUp(self):
        super().setUp()
        for name in ("hwsigner", "hwsigner.transport"):
            logger = logging.getLogger(name)
            self.addCleanup(logger.setLevel, logger.level)

    def test_levels(self):
        _apply_log_levels("info,transport=error")
        self.assertEqual(logging.INFO, logging.getLogger("hwsigner").level)
        self.assertEqual(logging.ERROR, logging.getLogger("hwsigner.transport").level)

    def test_star_changes_nothing(self):
        _apply_log_levels("*")
        self.assertEqual(logging.DEBUG, logging.getLogger("hwsigner").level)

    def test_invalid_filter(self):
        with self.assertRaises(ValueError):
            _apply_log_levels("a=b=c")


class TestFileLogging(HwSignerTestCase):

    def setUp(self):
        super().setUp()
        self.addCleanup(self._remove_file_handlers)

    def _remove_file_handlers(self):
        for handler in list(logging.getLogger().handlers):
            if isinstance(handler, logging.FileHandler):
                logging.getLogger().removeHandler(handler)
                handler.close()
        hwsigner.logging._logfile_path = None

    def test_old_logs_are_pruned(self):
        log_dir = pathlib.Path(self.hwsigner_path) / "logs"
        log_dir.mkdir()
        for i in range(12):
            (log_dir / f"hwsigner_log_2020010{i:02d}T000000Z_1.log").write_text("")
        _configure_file_logging(log_dir, keep=10)
        get_logger("transport").warning("written to the log file")
        logfile = hwsigner.logging._logfile_path
        self.assertEqual(log_dir, logfile.parent)
        self.assertEqual(11, len(list(log_dir.glob("hwsigner_log_*.log"))))
        self.assertFalse((log_dir / "hwsigner_log_202001000T000000Z_1.log").exists())
        for handler in logging.getLogger().handlers:
            handler.flush()
        self.assertIn("| transport | written to the log file", logfile.read_text(encoding='utf-8'))
