#!/usr/bin/env python
#
# hwsigner - host-side driver for HID hardware signing devices
# Copyright (C) 2011 thomasv@gitorious
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
import argparse
import re
import sys
from typing import Dict, Optional, TYPE_CHECKING

from .ethereum import Address, KeyPath, TransactionInfo
from .logging import Logger, configure_logging
from .simple_config import SimpleConfig
from .util import (BadMessageType, UserFacingException, bfh, json_encode,
                   print_msg, print_stderr)
from .version import HWSIGNER_VERSION

if TYPE_CHECKING:
    from .trezor import Manager


known_commands = {}  # type: Dict[str, Command]


class Command:
    def __init__(self, func, name, s):
        self.name = name
        self.requires_refresh = 'r' in s
        self.parse_docstring(func.__doc__)
        varnames = func.__code__.co_varnames[1:func.__code__.co_argcount]
        self.defaults = func.__defaults__
        if self.defaults:
            n = len(self.defaults)
            self.params = list(varnames[:-n])
            self.options = list(varnames[-n:])
        else:
            self.params = list(varnames)
            self.options = []
            self.defaults = []

    def parse_docstring(self, docstring):
        docstring = docstring or ''
        docstring = docstring.strip()
        self.description = docstring
        self.arg_descriptions = {}
        self.arg_types = {}
        for x in re.finditer(r'arg:(.*?):(.*?):(.*)$', docstring, flags=re.MULTILINE):
            self.arg_descriptions[x.group(2)] = x.group(3)
            self.arg_types[x.group(2)] = x.group(1)
            self.description = self.description.replace(x.group(), '')
        self.short_description = self.description.split('.')[0]


def command(s):
    """Registers a Commands method.
    s holds flags: 'r' = refresh the device snapshot before running.
    """
    def decorator(func):
        name = func.__name__
        known_commands[name] = Command(func, name, s)
        return func
    return decorator


class Commands(Logger):

    def __init__(self, *, config: 'SimpleConfig', manager: 'Manager'):
        Logger.__init__(self)
        self.config = config
        self.manager = manager

    def _run(self, method, **kwargs):
        cmd = known_commands[method]
        if cmd.requires_refresh:
            self.manager.update_devices()
        f = getattr(self, method)
        return f(**kwargs)

    def message(self, message_type: str, device_path: Optional[str] = None,
                message: Optional[str] = None) -> str:
        """String-in, string-out entry point for embedding applications.

        get_devices: JSON array of paths of locked devices
        pin_matrix_ack: unlock device_path with the PIN in message; JSON bool
        """
        if message_type == "get_devices":
            return json_encode(self.manager.list_closed_devices())
        elif message_type == "pin_matrix_ack":
            if device_path is None or message is None:
                raise BadMessageType()
            unlocked = self.manager.pin_matrix_ack(device_path, message)
            return json_encode(unlocked)
        raise BadMessageType()

    @command('r')
    def listdevices(self):
        """List connected devices that are unlocked and ready to sign."""
        return [info.to_json() for info in self.manager.list_devices()]

    @command('r')
    def getdevices(self):
        """List paths of connected devices that need a PIN."""
        return self.message("get_devices")

    @command('')
    def pinmatrixack(self, path, pin):
        """Send a PIN to a locked device. The PIN is entered using the positions
        shown on the device screen, not the digits themselves.

        arg:str:path:Device path, as listed by getdevices
        arg:str:pin:Scrambled PIN
        """
        return self.message("pin_matrix_ack", device_path=path, message=pin)

    @command('r')
    def signtransaction(self, address, nonce, gas_price, gas_limit, value, to=None, data=None, chain_id=None):
        """Sign an Ethereum transaction with the device holding address.

        arg:address:address:Address of the signing key
        arg:int:nonce:Transaction nonce
        arg:int:gas_price:Gas price in wei
        arg:int:gas_limit:Gas limit
        arg:int:value:Value in wei
        arg:address:to:Destination address; omit for contract creation
        arg:hex:data:Transaction data, hex encoded
        arg:int:chain_id:Chain id for EIP-155 replay protection
        """
        try:
            t_info = TransactionInfo(
                nonce=nonce,
                gas_price=gas_price,
                gas_limit=gas_limit,
                to=to,
                value=value,
                data=data or b'',
                chain_id=chain_id,
            )
        except ValueError as e:
            raise UserFacingException(f"Invalid transaction: {e}") from e
        sig = self.manager.sign_transaction(address, t_info)
        return {
            'r': sig.r.hex(),
            's': sig.s.hex(),
            'recovery_id': sig.recovery_id,
        }

    @command('r')
    def rawmessage(self, message_type, path=None, message=None):
        """Run a raw command-surface request (get_devices or pin_matrix_ack).

        arg:str:message_type:get_devices or pin_matrix_ack
        arg:str:path:Device path
        arg:str:message:Message argument, e.g. the PIN
        """
        return self.message(message_type, device_path=path, message=message)

    @command('')
    def version(self):
        """Return the version of hwsigner."""
        return HWSIGNER_VERSION


arg_types = {
    'int': lambda x: int(x, 0),
    'str': str,
    'hex': bfh,
    'address': Address.from_hex,
}


def add_global_options(parser, suppress=False):
    group = parser.add_argument_group('global options')
    group.add_argument(
        "-v", dest=SimpleConfig.VERBOSITY.key(), default=argparse.SUPPRESS,
        help=argparse.SUPPRESS if suppress else "Set verbosity (log levels)")
    group.add_argument(
        "-V", dest=SimpleConfig.VERBOSITY_SHORTCUTS.key(), default=argparse.SUPPRESS,
        help=argparse.SUPPRESS if suppress else "Set verbosity (shortcut-filter list)")
    group.add_argument(
        "-D", "--dir", dest="hwsigner_path", default=argparse.SUPPRESS,
        help=argparse.SUPPRESS if suppress else "hwsigner directory")
    group.add_argument(
        "--classic", action="store_const", dest=SimpleConfig.KEY_PATH.key(),
        const=KeyPath.EthereumClassic.config_value(), default=argparse.SUPPRESS,
        help=argparse.SUPPRESS if suppress else "Use the Ethereum Classic derivation path")
    group.add_argument(
        "--logtofile", action="store_true", dest=SimpleConfig.LOG_TO_FILE.key(), default=argparse.SUPPRESS,
        help=argparse.SUPPRESS if suppress else "Also write logs to a file in the hwsigner directory")
    group.add_argument(
        "--forgetconfig", action="store_true", dest=SimpleConfig.CONFIG_FORGET_CHANGES.key(), default=argparse.SUPPRESS,
        help=argparse.SUPPRESS if suppress else "Forget config on exit")


def get_parser():
    # create main parser
    parser = argparse.ArgumentParser(
        epilog="Run 'hwsigner <command> -h' to see the help for a command")
    add_global_options(parser)
    subparsers = parser.add_subparsers(dest='cmd', metavar='<command>')
    for cmdname in sorted(known_commands.keys()):
        cmd = known_commands[cmdname]
        p = subparsers.add_parser(
            cmdname,
            description=cmd.description,
            help=cmd.short_description,
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="Run 'hwsigner -h' to see the list of global options",
        )
        for optname, default in zip(cmd.options, cmd.defaults):
            help = cmd.arg_descriptions.get(optname)
            type_descriptor = cmd.arg_types.get(optname)
            _type = arg_types.get(type_descriptor, str)
            p.add_argument('--' + optname, dest=optname, default=default, help=help, type=_type)
        add_global_options(p, suppress=True)
        for param in cmd.params:
            help = cmd.arg_descriptions.get(param)
            type_descriptor = cmd.arg_types.get(param)
            _type = arg_types.get(type_descriptor, str)
            p.add_argument(param, help=help, type=_type)
    return parser


def main(argv=None, *, hid_api=None) -> int:
    from .trezor import Manager

    parser = get_parser()
    args = parser.parse_args(argv)
    if args.cmd is None:
        parser.print_help()
        return 1
    cmd = known_commands[args.cmd]
    # config options from the command line; unset ones fall through to the config file
    config_options = {k: v for k, v in vars(args).items()
                      if v is not None and k not in cmd.params and k not in cmd.options and k != 'cmd'}
    config = SimpleConfig(config_options)
    configure_logging(config)

    manager = Manager(hid_api, key_path=config.get_key_path())
    cmd_runner = Commands(config=config, manager=manager)
    kwargs = {k: getattr(args, k) for k in cmd.params + cmd.options}
    try:
        result = cmd_runner._run(args.cmd, **kwargs)
    except UserFacingException as e:
        print_stderr(str(e))
        return 1
    if isinstance(result, str):
        print_msg(result)
    else:
        print_msg(json_encode(result, indent=4))
    return 0


if __name__ == '__main__':
    sys.exit(main())
