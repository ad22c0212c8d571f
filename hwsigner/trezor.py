"""Trezor One support: device discovery, PIN unlock and Ethereum signing.

Protocol references:
    http://doc.satoshilabs.com/trezor-tech/api-protobuf.html
    https://github.com/trezor/trezor-common/blob/master/protob/protocol.md
"""
import enum
import threading
import time
from typing import List, Optional, Tuple

import attr

from . import messages
from .constants import (TREZOR_VID, TREZOR_PIDS, TREZOR_USAGE_PAGE,
                        DATA_INITIAL_CHUNK_SIZE, BUTTON_ACK_DELAY)
from .device import (DeviceHandle, EnumeratedDeviceOpener, PathDeviceOpener,
                     open_with_retry, path_to_str)
from .ethereum import Address, KeyPath, Signature, TransactionInfo, WalletInfo, int_to_big_endian
from .logging import Logger
from .messages import MessageType, parse_message
from .util import ClosedDevice, KeyNotFound, ProtocolError, UserCancel, profiler


UNKNOWN = "Unknown"


@attr.s(frozen=True)
class DeviceRecord:
    path = attr.ib(type=str)
    info = attr.ib(type=WalletInfo)


@attr.s(frozen=True)
class DeviceSnapshot:
    """Result of one refresh. Replaced as a whole, never modified."""
    devices = attr.ib(type=Tuple[DeviceRecord, ...], factory=tuple, converter=tuple)
    closed_devices = attr.ib(type=Tuple[str, ...], factory=tuple, converter=tuple)


def is_trezor_device(dev_info: dict) -> bool:
    return (dev_info['vendor_id'] == TREZOR_VID
            and dev_info['product_id'] in TREZOR_PIDS
            and dev_info.get('usage_page') == TREZOR_USAGE_PAGE)


def build_sign_request(key_path: KeyPath, t_info: TransactionInfo):
    """Returns the EthereumSignTx message and the data not sent inline."""
    # Not the documented big-endian integers: the device wants RLP encoded
    # integers without the leading length byte.
    msg = messages.EthereumSignTx(
        address_n=key_path.derivation_path,
        nonce=int_to_big_endian(t_info.nonce),
        gas_price=int_to_big_endian(t_info.gas_price),
        gas_limit=int_to_big_endian(t_info.gas_limit),
        value=int_to_big_endian(t_info.value),
    )
    if t_info.to is not None:
        msg.to = t_info.to.raw
    chunk = t_info.data[:DATA_INITIAL_CHUNK_SIZE]
    msg.data_initial_chunk = chunk
    msg.data_length = len(t_info.data)
    if t_info.chain_id is not None:
        msg.chain_id = t_info.chain_id
    return msg, t_info.data[len(chunk):]


def recovery_id_from_v(v: int, chain_id: Optional[int]) -> int:
    """Undo the device's adjustment of v.

    With a chain id the device returns v already adjusted for EIP-155,
    v = recovery_id + 35 + 2 * chain_id; callers apply their own chain
    encoding so it is removed here. Without one, v = recovery_id + 27.
    """
    if chain_id is not None:
        return v - (35 + 2 * chain_id)
    return v - 27


class SigningState(enum.Enum):
    AWAITING_RESPONSE = enum.auto()
    BUTTON_REQUEST = enum.auto()
    SEND_NEXT_CHUNK = enum.auto()
    COMPLETE = enum.auto()


class SigningLoop(Logger):
    """Drives the EthereumSignTx conversation after the request went out.

    The device may ask for button confirmation any number of times and
    for the remaining transaction data in chunks of its choosing, until
    it answers with the signature.
    """

    LOGGING_SHORTCUT = 'S'

    def __init__(self, handle: DeviceHandle, *, chain_id: Optional[int], data: bytes):
        self.handle = handle
        self.chain_id = chain_id
        self.data = data
        # offset into self.data of the first byte not yet sent
        self.offset = 0
        self.state = SigningState.AWAITING_RESPONSE
        Logger.__init__(self)

    def diagnostic_name(self):
        return self.handle.path

    def run(self) -> Signature:
        resp = None
        while self.state != SigningState.COMPLETE:
            if self.state == SigningState.AWAITING_RESPONSE:
                self.state, resp = self.read_response()
            elif self.state == SigningState.BUTTON_REQUEST:
                self.logger.info("waiting for button confirmation on device")
                self.handle.write_message(messages.ButtonAck())
                time.sleep(BUTTON_ACK_DELAY)
                self.state = SigningState.AWAITING_RESPONSE
            elif self.state == SigningState.SEND_NEXT_CHUNK:
                self.send_next_chunk(resp.data_length)
                self.state = SigningState.AWAITING_RESPONSE
        return self.get_signature(resp)

    def read_response(self):
        """Read one device message. Returns the next state and the parsed
        EthereumTxRequest, if that is what arrived.
        """
        resp_type, payload = self.handle.read_message()
        if resp_type == MessageType.Cancel:
            raise UserCancel()
        elif resp_type == MessageType.ButtonRequest:
            return SigningState.BUTTON_REQUEST, None
        elif resp_type == MessageType.EthereumTxRequest:
            resp = parse_message(resp_type, payload)
            if resp.HasField('data_length'):
                return SigningState.SEND_NEXT_CHUNK, resp
            return SigningState.COMPLETE, resp
        elif resp_type == MessageType.Failure:
            resp = parse_message(resp_type, payload)
            self.logger.info(f"device reported failure: code={resp.code} message={resp.message!r}")
            raise ProtocolError("Last message sent failed")
        raise ProtocolError("Unexpected response from Trezor device.")

    def send_next_chunk(self, length: int) -> None:
        if self.offset + length > len(self.data):
            raise ProtocolError("Device requested more data than the transaction holds")
        chunk = self.data[self.offset:self.offset + length]
        self.logger.debug(f"sending data chunk {self.offset}..{self.offset + length} of {len(self.data)}")
        self.handle.write_message(messages.EthereumTxAck(data_chunk=chunk))
        self.offset += length

    def get_signature(self, resp) -> Signature:
        recovery_id = recovery_id_from_v(resp.signature_v, self.chain_id)
        try:
            return Signature.from_rsv(resp.signature_r, resp.signature_s, recovery_id)
        except ValueError as e:
            raise ProtocolError(f"Invalid signature from Trezor device: {e}") from e


class Manager(Logger):
    """Trezor device manager.

    Keeps a snapshot of the connected devices, split into those that
    answered an address query and those that are locked behind a PIN.
    All hidapi access goes through usb_lock.
    """

    LOGGING_SHORTCUT = 'T'

    def __init__(self, hid_api=None, *, usb_lock: threading.Lock = None,
                 key_path: KeyPath = KeyPath.Ethereum):
        Logger.__init__(self)
        if hid_api is None:
            import hid
            hid_api = hid
        self.hid_api = hid_api
        self.usb_lock = usb_lock or threading.Lock()
        self.key_path = key_path
        self._snapshot = DeviceSnapshot()

    @profiler
    def update_devices(self) -> int:
        """Re-populate the device lists. Returns the number of usable devices.

        Any error other than a locked device aborts the refresh, leaving
        the previous snapshot in place.
        """
        new_devices = []  # type: List[DeviceRecord]
        closed_devices = []  # type: List[str]
        with self.usb_lock:
            for dev_info in self.hid_api.enumerate(0, 0):
                self.logger.debug(
                    f"checking device: vid={dev_info['vendor_id']:#06x} pid={dev_info['product_id']:#06x} "
                    f"usage_page={dev_info.get('usage_page', 0):#06x} path={dev_info['path']!r}")
                if not is_trezor_device(dev_info):
                    continue
                try:
                    new_devices.append(self._read_device_info(dev_info))
                except ClosedDevice as e:
                    closed_devices.append(e.path)
        self._snapshot = DeviceSnapshot(devices=new_devices, closed_devices=closed_devices)
        self.logger.info(f"found {len(new_devices)} usable and {len(closed_devices)} locked devices")
        return len(new_devices)

    def _read_device_info(self, dev_info: dict) -> DeviceRecord:
        opener = EnumeratedDeviceOpener(self.hid_api, dev_info)
        with open_with_retry(opener) as handle:
            address = self.get_address(handle)
        if address is None:
            raise ClosedDevice(opener.path)
        return DeviceRecord(
            path=opener.path,
            info=WalletInfo(
                name=dev_info.get('product_string') or UNKNOWN,
                manufacturer=dev_info.get('manufacturer_string') or UNKNOWN,
                serial=dev_info.get('serial_number') or UNKNOWN,
                address=address,
            ),
        )

    def set_key_path(self, key_path: KeyPath) -> None:
        """Select key derivation path for a known chain."""
        self.key_path = key_path

    def list_devices(self) -> List[WalletInfo]:
        """List connected wallets. Only wallets ready to be used are returned."""
        return [d.info for d in self._snapshot.devices]

    def list_closed_devices(self) -> List[str]:
        return list(self._snapshot.closed_devices)

    def device_info(self, address: Address) -> Optional[WalletInfo]:
        device = self._find_device(address)
        return device.info if device else None

    def _find_device(self, address: Address) -> Optional[DeviceRecord]:
        snapshot = self._snapshot
        for device in snapshot.devices:
            if device.info.address == address:
                return device
        return None

    def get_address(self, handle: DeviceHandle) -> Optional[Address]:
        """Ask the device for the address at our derivation path.
        Returns None if the device answers anything but an address,
        which is what a locked device does.
        """
        msg = messages.EthereumGetAddress(
            address_n=self.key_path.derivation_path,
            show_display=False,
        )
        handle.write_message(msg)
        resp_type, payload = handle.read_message()
        if resp_type != MessageType.EthereumAddress:
            self.logger.debug(f"no address from {handle.path}, got {resp_type.name}")
            return None
        resp = parse_message(resp_type, payload)
        try:
            return Address(resp.address)
        except ValueError as e:
            raise ProtocolError(f"Invalid address from Trezor device: {e}") from e

    def pin_matrix_ack(self, device_path: str, pin: str) -> bool:
        """Send a PIN to a locked device. Returns whether it unlocked."""
        with self.usb_lock:
            with open_with_retry(PathDeviceOpener(self.hid_api, device_path)) as handle:
                handle.write_message(messages.PinMatrixAck(pin=pin))
                resp_type, _payload = handle.read_message()
        # Getting an address back means it's unlocked; this is undocumented behaviour.
        # Anything else, Failure included, means it is still locked.
        unlocked = resp_type == MessageType.EthereumAddress
        self.logger.info(f"pin for {path_to_str(device_path)} {'accepted' if unlocked else 'rejected'}")
        return unlocked

    def sign_transaction(self, address: Address, t_info: TransactionInfo) -> Signature:
        """Sign transaction data with the wallet managing `address`."""
        device = self._find_device(address)
        if device is None:
            raise KeyNotFound()
        msg, remaining_data = build_sign_request(self.key_path, t_info)
        with self.usb_lock:
            with open_with_retry(PathDeviceOpener(self.hid_api, device.path)) as handle:
                handle.write_message(msg)
                loop = SigningLoop(handle, chain_id=t_info.chain_id, data=remaining_data)
                return loop.run()
