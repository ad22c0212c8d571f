"""Opening hid devices, with retries, as scoped handles."""
import time
from abc import ABC, abstractmethod
from typing import Tuple, Union

from . import transport
from .messages import MessageType
from .constants import OPEN_ATTEMPTS, OPEN_RETRY_DELAY
from .logging import get_logger
from .util import KeyNotFound, TransportError


_logger = get_logger(__name__)


def path_to_str(path: Union[str, bytes]) -> str:
    if isinstance(path, bytes):
        return path.decode('utf-8')
    return path


def path_to_bytes(path: Union[str, bytes]) -> bytes:
    if isinstance(path, str):
        return path.encode('utf-8')
    return path


class DeviceOpener(ABC):
    """Strategy for obtaining a raw hid device object."""

    def __init__(self, hid_api):
        self.hid_api = hid_api

    @property
    @abstractmethod
    def path(self) -> str:
        pass

    @abstractmethod
    def open(self):
        """Returns an opened hid device, or raises OSError."""
        pass

    def _open_path(self, path: bytes):
        device = self.hid_api.device()
        device.open_path(path)
        return device


class EnumeratedDeviceOpener(DeviceOpener):
    """Opens the device described by an hid.enumerate() entry."""

    def __init__(self, hid_api, dev_info: dict):
        DeviceOpener.__init__(self, hid_api)
        self.dev_info = dev_info

    @property
    def path(self) -> str:
        return path_to_str(self.dev_info['path'])

    def open(self):
        return self._open_path(path_to_bytes(self.dev_info['path']))


class PathDeviceOpener(DeviceOpener):
    """Opens a device by a path string we handed out earlier."""

    def __init__(self, hid_api, path: Union[str, bytes]):
        DeviceOpener.__init__(self, hid_api)
        self._path = path_to_str(path)

    @property
    def path(self) -> str:
        return self._path

    def open(self):
        return self._open_path(path_to_bytes(self._path))


class DeviceHandle:
    """An open hid device, owned by a single operation.

    Use as a context manager; the device is closed on every exit path.
    """

    def __init__(self, device, path: str):
        self.device = device
        self.path = path

    def __enter__(self) -> 'DeviceHandle':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        if self.device is None:
            return
        try:
            self.device.close()
        except OSError as e:
            _logger.info(f"error closing {self.path}: {e!r}")
        finally:
            self.device = None

    def write_message(self, msg) -> int:
        return transport.write_message(self.device, msg)

    def read_message(self) -> Tuple[MessageType, bytes]:
        return transport.read_message(self.device)


def open_with_retry(opener: DeviceOpener, *, attempts: int = OPEN_ATTEMPTS,
                    delay: float = OPEN_RETRY_DELAY) -> DeviceHandle:
    """Try to open a device a few times; hidapi often fails transiently
    right after enumeration. Raises the error of the last attempt.
    """
    # only raised if no attempt runs at all
    err = KeyNotFound()
    for i in range(attempts):
        try:
            device = opener.open()
        except (OSError, ValueError) as e:
            _logger.debug(f"opening {opener.path} failed (attempt {i + 1}/{attempts}): {e!r}")
            err = TransportError(e)
            err.__cause__ = e
        else:
            return DeviceHandle(device, opener.path)
        time.sleep(delay)
    raise err
