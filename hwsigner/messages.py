"""Trezor One message schema, as far as Ethereum signing needs it.

The classes are protobuf (proto2) messages built from a descriptor at import
time; field numbers and message type ids follow trezor-common's
messages.proto. Enum-typed fields of the upstream schema are declared as
uint32, which is wire compatible.
"""
import enum

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError

from .util import ProtocolError


class MessageType(enum.IntEnum):
    Success = 2
    Failure = 3
    PinMatrixRequest = 18
    PinMatrixAck = 19
    Cancel = 20
    ButtonRequest = 26
    ButtonAck = 27
    EthereumGetAddress = 56
    EthereumAddress = 57
    EthereumSignTx = 58
    EthereumTxRequest = 59
    EthereumTxAck = 60


_F = descriptor_pb2.FieldDescriptorProto
OPTIONAL, REPEATED = _F.LABEL_OPTIONAL, _F.LABEL_REPEATED
UINT32, BOOL, BYTES, STRING = _F.TYPE_UINT32, _F.TYPE_BOOL, _F.TYPE_BYTES, _F.TYPE_STRING

# message name -> (field name, field number, type, label)
_FIELDS = {
    'Success': (
        ('message', 1, STRING, OPTIONAL),
    ),
    'Failure': (
        ('code', 1, UINT32, OPTIONAL),
        ('message', 2, STRING, OPTIONAL),
    ),
    'PinMatrixRequest': (
        ('type', 1, UINT32, OPTIONAL),
    ),
    'PinMatrixAck': (
        ('pin', 1, STRING, OPTIONAL),
    ),
    'Cancel': (),
    'ButtonRequest': (
        ('code', 1, UINT32, OPTIONAL),
        ('data', 2, STRING, OPTIONAL),
    ),
    'ButtonAck': (),
    'EthereumGetAddress': (
        ('address_n', 1, UINT32, REPEATED),
        ('show_display', 2, BOOL, OPTIONAL),
    ),
    'EthereumAddress': (
        ('address', 1, BYTES, OPTIONAL),
    ),
    'EthereumSignTx': (
        ('address_n', 1, UINT32, REPEATED),
        ('nonce', 2, BYTES, OPTIONAL),
        ('gas_price', 3, BYTES, OPTIONAL),
        ('gas_limit', 4, BYTES, OPTIONAL),
        ('to', 5, BYTES, OPTIONAL),
        ('value', 6, BYTES, OPTIONAL),
        ('data_initial_chunk', 7, BYTES, OPTIONAL),
        ('data_length', 8, UINT32, OPTIONAL),
        ('chain_id', 9, UINT32, OPTIONAL),
    ),
    'EthereumTxRequest': (
        ('data_length', 1, UINT32, OPTIONAL),
        ('signature_v', 2, UINT32, OPTIONAL),
        ('signature_r', 3, BYTES, OPTIONAL),
        ('signature_s', 4, BYTES, OPTIONAL),
    ),
    'EthereumTxAck': (
        ('data_chunk', 1, BYTES, OPTIONAL),
    ),
}

PACKAGE = 'hwsigner'


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name='hwsigner/messages.proto', package=PACKAGE, syntax='proto2')
    for msg_name, fields in _FIELDS.items():
        msg_proto = file_proto.message_type.add(name=msg_name)
        for field_name, number, type_, label in fields:
            msg_proto.field.add(name=field_name, number=number, type=type_, label=label)
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file_descriptor().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f'{PACKAGE}.{name}'))


Success = _message_class('Success')
Failure = _message_class('Failure')
PinMatrixRequest = _message_class('PinMatrixRequest')
PinMatrixAck = _message_class('PinMatrixAck')
Cancel = _message_class('Cancel')
ButtonRequest = _message_class('ButtonRequest')
ButtonAck = _message_class('ButtonAck')
EthereumGetAddress = _message_class('EthereumGetAddress')
EthereumAddress = _message_class('EthereumAddress')
EthereumSignTx = _message_class('EthereumSignTx')
EthereumTxRequest = _message_class('EthereumTxRequest')
EthereumTxAck = _message_class('EthereumTxAck')


map_type_to_class = {}
map_class_to_type = {}


def build_map():
    for msg_type in MessageType:
        msg_class = globals()[msg_type.name]
        map_type_to_class[msg_type] = msg_class
        map_class_to_type[msg_class] = msg_type


def get_type(msg) -> MessageType:
    return map_class_to_type[msg.__class__]


def get_class(t: MessageType):
    return map_type_to_class[t]


def parse_message(msg_type: MessageType, payload: bytes):
    """Decode the payload of a frame whose type is already known."""
    msg = get_class(msg_type)()
    try:
        msg.ParseFromString(payload)
    except DecodeError as e:
        raise ProtocolError("Could not read response from Trezor device") from e
    return msg


build_map()
