from .version import HWSIGNER_VERSION
from .util import (HardwareWalletError, ProtocolError, TransportError, KeyNotFound,
                   UserCancel, BadMessageType, SerializationError, ClosedDevice)
from .ethereum import Address, KeyPath, Signature, TransactionInfo, WalletInfo
from .simple_config import SimpleConfig
from .trezor import Manager
from .commands import Commands, known_commands


__version__ = HWSIGNER_VERSION
