# hwsigner - host-side driver for HID hardware signing devices
# Copyright (C) 2011 Thomas Voegtlin
# Copyright (C) 2017 The hwsigner developers
#
# Permission is hereby granted, free of charge, to any person
# obtaining a copy of this software and associated documentation files
# (the "Software"), to deal in the Software without restriction,
# including without limitation the rights to use, copy, modify, merge,
# publish, distribute, sublicense, and/or sell copies of the Software,
# and to permit persons to whom the Software is furnished to do so,
# subject to the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS
# BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN
# ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN
# CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
import os
import sys
import json
import stat
import time
from functools import partial
from typing import Union, Optional

from .logging import get_logger


_logger = get_logger(__name__)


class UserFacingException(Exception):
    """Exception that contains information intended to be shown to the user."""


class UserCancelled(Exception):
    '''An exception that is suppressed from the user'''
    pass


class HardwareWalletError(UserFacingException):
    """Base class of every error raised while talking to a signing device."""


class ProtocolError(HardwareWalletError):
    """The device sent a malformed or unexpected response."""

    def __init__(self, message: str):
        HardwareWalletError.__init__(self, message)
        self.message = message

    def __str__(self):
        return f"Trezor protocol error: {self.message}"


class TransportError(HardwareWalletError):
    """The USB HID layer failed underneath us."""

    def __str__(self):
        cause = self.args[0] if self.args else None
        return f"USB communication error: {cause}"


class KeyNotFound(HardwareWalletError):
    def __str__(self):
        return "Key not found"


class UserCancel(HardwareWalletError, UserCancelled):
    def __str__(self):
        return "Operation has been cancelled"


class BadMessageType(HardwareWalletError):
    def __str__(self):
        return "Bad Message Type in RPC call"


class SerializationError(HardwareWalletError):

    def __str__(self):
        cause = self.args[0] if self.args else None
        return f"Serde serialization error: {cause}"


class ClosedDevice(HardwareWalletError):
    """Device matched our filters but is locked and needs a PIN."""

    def __init__(self, path: str):
        HardwareWalletError.__init__(self, path)
        self.path = path

    def __str__(self):
        return f"Device is closed, needs PIN to perform operations: {self.path}"


def json_encode(obj, *, indent: Optional[int] = None) -> str:
    """JSON text as returned over the string command surface (compact by default)."""
    try:
        return json.dumps(obj, indent=indent)
    except (TypeError, ValueError) as e:
        raise SerializationError(e) from e


_profiler_logger = _logger.getChild('profiler')
def profiler(func=None, *, min_threshold: Union[int, float, None] = None):
    """Function decorator that logs execution time.

    min_threshold: if set, only log if time taken is higher than threshold
    """
    if func is None:  # to make "@profiler(...)" work. (in addition to bare "@profiler")
        return partial(profiler, min_threshold=min_threshold)
    def do_profile(*args, **kw_args):
        name = func.__qualname__
        t0 = time.time()
        o = func(*args, **kw_args)
        t = time.time() - t0
        if min_threshold is None or t > min_threshold:
            _profiler_logger.debug(f"{name} {t:,.4f} sec")
        return o
    return do_profile


def chunks(items, size: int):
    """Break up items, an iterable, into chunks of length size."""
    if size < 1:
        raise ValueError(f"size must be positive, not {repr(size)}")
    for i in range(0, len(items), size):
        yield items[i: i + size]


bfh = bytes.fromhex


def user_dir() -> Optional[str]:
    if "HWSIGNERDIR" in os.environ:
        return os.environ["HWSIGNERDIR"]
    elif os.name == 'posix':
        return os.path.join(os.environ["HOME"], ".hwsigner")
    elif "APPDATA" in os.environ:
        return os.path.join(os.environ["APPDATA"], "hwsigner")
    elif "LOCALAPPDATA" in os.environ:
        return os.path.join(os.environ["LOCALAPPDATA"], "hwsigner")
    else:
        #raise Exception("No home directory found in environment variables.")
        return


def is_subpath(long_path: str, short_path: str) -> bool:
    """Returns whether long_path is a sub-path of short_path."""
    try:
        common = os.path.commonpath([long_path, short_path])
    except ValueError:
        return False
    short_path = os.path.normcase(os.path.abspath(short_path))
    common = os.path.normcase(os.path.abspath(common))
    return short_path == common


def os_chmod(path, mode):
    """os.chmod aware of tmpfs"""
    try:
        os.chmod(path, mode)
    except OSError as e:
        xdg_runtime_dir = os.environ.get("XDG_RUNTIME_DIR", None)
        if xdg_runtime_dir and is_subpath(path, xdg_runtime_dir):
            _logger.info(f"Tried to chmod in tmpfs. Skipping... {e!r}")
        else:
            raise


def make_dir(path, allow_symlink=True):
    """Make directory if it does not yet exist."""
    if not os.path.exists(path):
        if not allow_symlink and os.path.islink(path):
            raise Exception('Dangling link: ' + path)
        os.mkdir(path)
        os_chmod(path, stat.S_IRUSR | stat.S_IWUSR | stat.S_IXUSR)


def print_stderr(*args):
    args = [str(item) for item in args]
    sys.stderr.write(" ".join(args) + "\n")
    sys.stderr.flush()


def print_msg(*args):
    # Stringify args
    args = [str(item) for item in args]
    sys.stdout.write(" ".join(args) + "\n")
    sys.stdout.flush()
