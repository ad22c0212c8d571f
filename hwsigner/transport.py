'''USB HID framing of Trezor One messages.

A message travels as

    "##" | type (2 bytes BE) | payload length (4 bytes BE) | payload

zero padded to a multiple of 63 bytes and cut into 63 byte chunks. Each
chunk goes out as one 65 byte report: report id placeholder, '?', chunk.
hidapi drops the report id on the way in, so reads yield '?' + 63 bytes.
'''
import struct
from typing import List, Tuple

from .constants import (HID_CHUNK_SIZE, HID_REPORT_ID, HID_REPORT_MARKER, HID_READ_SIZE,
                        MESSAGE_MAGIC, MESSAGE_HEADER_FORMAT, MESSAGE_HEADER_SIZE, READ_TIMEOUT_MS)
from .logging import get_logger
from .messages import MessageType, get_type
from .util import ProtocolError, TransportError, chunks


_logger = get_logger(__name__)

# '?##' + header
FIRST_REPORT_MIN_SIZE = len(HID_REPORT_MARKER) + len(MESSAGE_MAGIC) + MESSAGE_HEADER_SIZE


def encode_frame(msg_type: int, payload: bytes) -> bytes:
    """Message body, padded to a whole number of chunks."""
    header = struct.pack(MESSAGE_HEADER_FORMAT, msg_type, len(payload))
    data = MESSAGE_MAGIC + header + payload
    if len(data) % HID_CHUNK_SIZE:
        data += b"\x00" * (HID_CHUNK_SIZE - len(data) % HID_CHUNK_SIZE)
    return data


def encode_reports(msg_type: int, payload: bytes) -> List[bytes]:
    prefix = bytes([HID_REPORT_ID]) + HID_REPORT_MARKER
    return [prefix + chunk for chunk in chunks(encode_frame(msg_type, payload), HID_CHUNK_SIZE)]


def write_message(device, msg) -> int:
    """Serialize a protobuf message and write it to an open hid device.
    Returns the number of bytes written.
    """
    msg_type = get_type(msg)
    payload = msg.SerializeToString()
    _logger.debug(f"-> {msg_type.name} ({len(payload)} bytes)")
    total_written = 0
    for report in encode_reports(msg_type, payload):
        try:
            written = device.write(report)
        except (OSError, ValueError) as e:
            raise TransportError(e) from e
        if written < 0:
            raise TransportError(f"write failed ({written})")
        total_written += written
    return total_written


def _read_report(device) -> bytes:
    try:
        data = device.read(HID_READ_SIZE, READ_TIMEOUT_MS)
    except (OSError, ValueError) as e:
        raise TransportError(e) from e
    return bytes(data)


def read_frame(device) -> Tuple[int, bytes]:
    """Read one message off the wire. Each report read may block for
    READ_TIMEOUT_MS; there is no bound on the message as a whole.
    """
    buf = _read_report(device)
    if (len(buf) < FIRST_REPORT_MIN_SIZE
            or buf[:1] != HID_REPORT_MARKER
            or buf[1:3] != MESSAGE_MAGIC):
        raise ProtocolError("Unexpected wire response from Trezor device")
    msg_type, msg_size = struct.unpack_from(MESSAGE_HEADER_FORMAT, buf, 3)
    data = bytearray(buf[FIRST_REPORT_MIN_SIZE:])
    while len(data) < msg_size:
        buf = _read_report(device)
        if not buf:
            # read timed out halfway through a message
            raise ProtocolError("Unexpected wire response from Trezor device")
        data.extend(buf[len(HID_REPORT_MARKER):])
    return msg_type, bytes(data[:msg_size])


def read_message(device) -> Tuple[MessageType, bytes]:
    msg_type, payload = read_frame(device)
    try:
        msg_type = MessageType(msg_type)
    except ValueError:
        raise ProtocolError("Unexpected wire response from Trezor device") from None
    _logger.debug(f"<- {msg_type.name} ({len(payload)} bytes)")
    return msg_type, payload
