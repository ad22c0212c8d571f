import json
import threading
import os
import stat
from copy import deepcopy
from typing import Any, Dict, Optional, Union

from .ethereum import KeyPath
from .util import os_chmod, user_dir, make_dir
from .logging import Logger


class ConfigVar(property):
    """A config key exposed as a typed attribute of SimpleConfig."""

    def __init__(self, key: str, *, default, type_=None):
        self._key = key
        self._default = default
        self._type = type_
        property.__init__(self, self._get_config_value, self._set_config_value)

    def _get_config_value(self, config: 'SimpleConfig'):
        with config.lock:
            if not config.is_set(self._key):
                return self._default
            value = config.get(self._key)
            if self._type is not None:
                try:
                    value = self._type(value)
                except (TypeError, ValueError) as e:
                    raise ValueError(
                        f"config key {self._key!r}: cannot convert {value!r} to {self._type.__name__}") from e
            return value

    def _set_config_value(self, config: 'SimpleConfig', value):
        if self._type is not None and value is not None and not isinstance(value, self._type):
            raise ValueError(f"config key {self._key!r}: expected {self._type.__name__}, got {value!r}")
        config.set_key(self._key, value)

    def key(self) -> str:
        return self._key


def _key_name(key: Union[str, ConfigVar]) -> str:
    if isinstance(key, ConfigVar):
        key = key.key()
    assert isinstance(key, str), key
    return key


class SimpleConfig(Logger):
    """
    Settings come from two sources:
        1. Command line options.
        2. The JSON "config" file in the hwsigner directory.
    1. overrides 2., and command line values are never written back.

    Only user-facing choices live here. The USB identity, framing sizes,
    timeouts and retry counts are fixed in constants.py.
    """

    def __init__(self, options=None, read_user_config_function=None,
                 read_user_dir_function=None):
        Logger.__init__(self)
        # guards reads and updates of the two dicts below
        self.lock = threading.RLock()

        # injectable for tests
        self.user_dir = read_user_dir_function or user_dir
        read_user_config_function = read_user_config_function or read_user_config

        self.cmdline_options = deepcopy(options or {})
        self.user_config = {}  # type: Dict[str, Any]
        self.path = self.hwsigner_path()
        self.user_config = read_user_config_function(self.path)

    def hwsigner_path(self) -> Optional[str]:
        path = self.get('hwsigner_path') or self.user_dir()
        if path:
            make_dir(path, allow_symlink=False)
        self.logger.info(f"hwsigner directory {path}")
        return path

    def get(self, key: str, default=None) -> Any:
        with self.lock:
            value = self.cmdline_options.get(key)
            if value is None:
                value = self.user_config.get(key, default)
            return value

    def is_set(self, key: Union[str, ConfigVar]) -> bool:
        return self.get(_key_name(key), default=...) is not ...

    def is_modifiable(self, key: Union[str, ConfigVar]) -> bool:
        return _key_name(key) not in self.cmdline_options

    def set_key(self, key: Union[str, ConfigVar], value, *, save=True) -> None:
        """Set a key in the user config. None removes it."""
        key = _key_name(key)
        if not self.is_modifiable(key):
            self.logger.warning(f"not changing config key {key!r} set on the command line")
            return
        with self.lock:
            if value is None:
                self.user_config.pop(key, None)
            else:
                self.user_config[key] = value
            if save:
                self.save_user_config()

    def save_user_config(self) -> None:
        if self.CONFIG_FORGET_CHANGES or not self.path:
            return
        path = os.path.join(self.path, "config")
        s = json.dumps(self.user_config, indent=4, sort_keys=True)
        try:
            with open(path, "w", encoding='utf-8') as f:
                os_chmod(path, stat.S_IREAD | stat.S_IWRITE)  # before any data is written
                f.write(s)
        except OSError:
            # the directory may have gone away while we were running
            if os.path.exists(self.path):
                raise

    def get_key_path(self) -> KeyPath:
        return KeyPath.from_config_value(self.KEY_PATH)

    def set_key_path(self, key_path: KeyPath) -> None:
        self.KEY_PATH = key_path.config_value()

    KEY_PATH = ConfigVar('key_path', default=KeyPath.Ethereum.config_value(), type_=str)
    LOG_TO_FILE = ConfigVar('log_to_file', default=False, type_=bool)
    VERBOSITY = ConfigVar('verbosity', default=None, type_=str)
    VERBOSITY_SHORTCUTS = ConfigVar('verbosity_shortcuts', default=None, type_=str)
    CONFIG_FORGET_CHANGES = ConfigVar('forget_config', default=False, type_=bool)


def read_user_config(path: Optional[str]) -> Dict[str, Any]:
    """Contents of <path>/config, or {} if there is no such file."""
    if not path:
        return {}
    config_path = os.path.join(path, "config")
    if not os.path.exists(config_path):
        return {}
    try:
        with open(config_path, "r", encoding='utf-8') as f:
            result = json.load(f)
    except (OSError, ValueError) as e:
        raise ValueError(f"Invalid config file at {config_path}: {e}") from e
    if not isinstance(result, dict):
        raise ValueError(f"Invalid config file at {config_path}: not a JSON object")
    return result
