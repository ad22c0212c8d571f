"""Ethereum-side value types exchanged with the signing device."""
import enum
from typing import Optional, Tuple

import attr

from . import constants


def int_to_big_endian(value: int) -> bytes:
    """Minimal big-endian encoding of a non-negative integer; 0 encodes as b''.

    This is what the device expects for nonce, gas price, gas limit and
    value: an RLP integer with the leading length prefix removed.
    """
    if value < 0:
        raise ValueError(f"cannot encode negative integer {value}")
    return value.to_bytes((value.bit_length() + 7) // 8, 'big')


def _to_address_bytes(x) -> bytes:
    if isinstance(x, Address):
        return x.raw
    if isinstance(x, str):
        x = x[2:] if x.lower().startswith('0x') else x
        x = bytes.fromhex(x)
    x = bytes(x)
    if len(x) != 20:
        raise ValueError(f"address must be 20 bytes, got {len(x)}")
    return x


@attr.s(frozen=True)
class Address:
    raw = attr.ib(type=bytes, converter=_to_address_bytes)

    @classmethod
    def from_hex(cls, s: str) -> 'Address':
        return cls(s)

    def hex(self) -> str:
        return '0x' + self.raw.hex()

    def __str__(self):
        return self.hex()

    def __bytes__(self):
        return self.raw


def _to_hash256(x) -> bytes:
    x = bytes(x)
    if len(x) != 32:
        raise ValueError(f"signature component must be 32 bytes, got {len(x)}")
    return x


@attr.s(frozen=True)
class Signature:
    r = attr.ib(type=bytes, converter=_to_hash256)
    s = attr.ib(type=bytes, converter=_to_hash256)
    recovery_id = attr.ib(type=int)

    @recovery_id.validator
    def _check_recovery_id(self, attribute, value):
        if not 0 <= value <= 255:
            raise ValueError(f"recovery id out of range: {value}")

    @classmethod
    def from_rsv(cls, r: bytes, s: bytes, v: int) -> 'Signature':
        return cls(r=r, s=s, recovery_id=v)

    def to_bytes(self) -> bytes:
        """65 bytes: r || s || recovery id"""
        return self.r + self.s + bytes([self.recovery_id])

    def hex(self) -> str:
        return self.to_bytes().hex()


def _check_non_negative(instance, attribute, value):
    if value < 0:
        raise ValueError(f"{attribute.name} must not be negative: {value}")


@attr.s(frozen=True)
class TransactionInfo:
    nonce = attr.ib(type=int, validator=_check_non_negative)
    gas_price = attr.ib(type=int, validator=_check_non_negative)
    gas_limit = attr.ib(type=int, validator=_check_non_negative)
    to = attr.ib(type=Optional[Address])
    value = attr.ib(type=int, validator=_check_non_negative)
    data = attr.ib(type=bytes, default=b'', converter=bytes)
    chain_id = attr.ib(type=Optional[int], default=None)

    @chain_id.validator
    def _check_chain_id(self, attribute, value):
        # the device takes a uint32
        if value is not None and not 0 <= value < 1 << 32:
            raise ValueError(f"chain id must fit in 32 bits: {value}")


@attr.s(frozen=True)
class WalletInfo:
    name = attr.ib(type=str)
    manufacturer = attr.ib(type=str)
    serial = attr.ib(type=str)
    address = attr.ib(type=Address)

    def to_json(self) -> dict:
        return {
            'name': self.name,
            'manufacturer': self.manufacturer,
            'serial': self.serial,
            'address': self.address.hex(),
        }


class KeyPath(enum.Enum):
    Ethereum = constants.ETH_DERIVATION_PATH
    EthereumClassic = constants.ETC_DERIVATION_PATH

    @property
    def derivation_path(self) -> Tuple[int, ...]:
        return self.value

    def config_value(self) -> str:
        return _CONFIG_VALUES[self]

    @classmethod
    def from_config_value(cls, s: str) -> 'KeyPath':
        for key_path, name in _CONFIG_VALUES.items():
            if name == s:
                return key_path
        raise ValueError(f"unknown key path: {s!r}")

    def __str__(self):
        items = ['m']
        for n in self.derivation_path:
            if n & constants.HARDENED_FLAG:
                items.append(f"{n & ~constants.HARDENED_FLAG}'")
            else:
                items.append(str(n))
        return '/'.join(items)


_CONFIG_VALUES = {
    KeyPath.Ethereum: 'ethereum',
    KeyPath.EthereumClassic: 'ethereum_classic',
}
