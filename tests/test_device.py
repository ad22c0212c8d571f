from unittest import mock

from hwsigner.constants import OPEN_ATTEMPTS, OPEN_RETRY_DELAY
from hwsigner.device import (DeviceHandle, DeviceOpener, EnumeratedDeviceOpener,
                             PathDeviceOpener, open_with_retry)
from hwsigner.util import KeyNotFound, TransportError

from . import HwSignerTestCase
from .fake_hid import FakeHidApi, FakeTrezor


class CountingOpener(DeviceOpener):

    def __init__(self, *, failures: int):
        DeviceOpener.__init__(self, hid_api=None)
        self.failures = failures
        self.calls = 0

    @property
    def path(self):
        return "counting"

    def open(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise OSError(f"attempt {self.calls} failed")
        return mock.Mock()


@mock.patch('hwsigner.device.time.sleep')
class TestOpenWithRetry(HwSignerTestCase):

    def test_first_attempt_succeeds(self, mock_sleep):
        opener = CountingOpener(failures=0)
        handle = open_with_retry(opener)
        self.assertIsInstance(handle, DeviceHandle)
        self.assertEqual(1, opener.calls)
        mock_sleep.assert_not_called()

    def test_transient_failures(self, mock_sleep):
        opener = CountingOpener(failures=3)
        handle = open_with_retry(opener)
        self.assertEqual("counting", handle.path)
        self.assertEqual(4, opener.calls)
        self.assertEqual([mock.call(OPEN_RETRY_DELAY)] * 3, mock_sleep.call_args_list)

    def test_permanent_failure_reports_last_error(self, mock_sleep):
        opener = CountingOpener(failures=100)
        with self.assertRaises(TransportError) as ctx:
            open_with_retry(opener)
        self.assertEqual(10, OPEN_ATTEMPTS)
        self.assertEqual(OPEN_ATTEMPTS, opener.calls)
        self.assertEqual(f"attempt {OPEN_ATTEMPTS} failed", str(ctx.exception.__cause__))
        self.assertIn(f"attempt {OPEN_ATTEMPTS} failed", str(ctx.exception))
        self.assertEqual(OPEN_ATTEMPTS, mock_sleep.call_count)
        for call in mock_sleep.call_args_list:
            self.assertEqual(mock.call(0.2), call)

    def test_no_attempts_reports_key_not_found(self, mock_sleep):
        opener = CountingOpener(failures=0)
        with self.assertRaises(KeyNotFound):
            open_with_retry(opener, attempts=0)
        self.assertEqual(0, opener.calls)


class TestOpeners(HwSignerTestCase):

    def setUp(self):
        super().setUp()
        self.api = FakeHidApi()
        self.api.add_device(FakeTrezor(), path=b"1-1:1.0")

    def test_open_by_enumeration_entry(self):
        opener = EnumeratedDeviceOpener(self.api, self.api.enumerate()[0])
        self.assertEqual("1-1:1.0", opener.path)
        opener.open()
        self.assertEqual([b"1-1:1.0"], self.api.opened)

    def test_open_by_path_string(self):
        opener = PathDeviceOpener(self.api, "1-1:1.0")
        self.assertEqual("1-1:1.0", opener.path)
        opener.open()
        self.assertEqual([b"1-1:1.0"], self.api.opened)

    @mock.patch('hwsigner.device.time.sleep')
    def test_unknown_path(self, mock_sleep):
        with self.assertRaises(TransportError):
            open_with_retry(PathDeviceOpener(self.api, "nope"))
        self.assertEqual([b"nope"] * OPEN_ATTEMPTS, self.api.open_attempts)


class TestDeviceHandle(HwSignerTestCase):

    def test_closed_on_success(self):
        device = mock.Mock()
        with DeviceHandle(device, "p") as handle:
            self.assertIs(device, handle.device)
        device.close.assert_called_once_with()
        self.assertIsNone(handle.device)

    def test_closed_on_error(self):
        device = mock.Mock()
        with self.assertRaises(ValueError):
            with DeviceHandle(device, "p"):
                raise ValueError("boom")
        device.close.assert_called_once_with()

    def test_close_is_idempotent(self):
        device = mock.Mock()
        handle = DeviceHandle(device, "p")
        handle.close()
        handle.close()
        device.close.assert_called_once_with()
