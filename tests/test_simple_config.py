import ast
import os
import tempfile
import shutil

from hwsigner.ethereum import KeyPath
from hwsigner.simple_config import SimpleConfig, read_user_config

from . import HwSignerTestCase


class Test_SimpleConfig(HwSignerTestCase):

    def setUp(self):
        super(Test_SimpleConfig, self).setUp()
        # make sure "read_user_config" and "user_dir" return a temporary directory.
        self.hwsigner_dir = tempfile.mkdtemp()
        # Do the same for the user dir to avoid overwriting the real configuration
        self.user_dir = tempfile.mkdtemp()

        self.options = {"hwsigner_path": self.hwsigner_dir}

    def tearDown(self):
        super(Test_SimpleConfig, self).tearDown()
        shutil.rmtree(self.hwsigner_dir)
        shutil.rmtree(self.user_dir)

    def test_simple_config_command_line_overrides_everything(self):
        """Options passed by command line override all other configuration
        sources"""
        fake_read_user = lambda _: {"hwsigner_path": "b", "key_path": "ethereum"}
        read_user_dir = lambda : self.user_dir
        self.options["key_path"] = "ethereum_classic"
        config = SimpleConfig(options=self.options,
                              read_user_config_function=fake_read_user,
                              read_user_dir_function=read_user_dir)
        self.assertEqual(self.hwsigner_dir, config.get("hwsigner_path"))
        self.assertEqual(KeyPath.EthereumClassic, config.get_key_path())

    def test_user_config_is_used_if_others_arent_specified(self):
        fake_read_user = lambda _: {"key_path": "ethereum_classic"}
        read_user_dir = lambda : self.user_dir
        config = SimpleConfig(options={},
                              read_user_config_function=fake_read_user,
                              read_user_dir_function=read_user_dir)
        self.assertEqual(self.user_dir, config.path)
        self.assertEqual(KeyPath.EthereumClassic, config.get_key_path())

    def test_default_key_path(self):
        config = SimpleConfig(self.options)
        self.assertEqual("ethereum", config.KEY_PATH)
        self.assertEqual(KeyPath.Ethereum, config.get_key_path())

    def test_invalid_key_path(self):
        config = SimpleConfig(self.options, read_user_config_function=lambda _: {"key_path": "bitcoin"})
        with self.assertRaises(ValueError):
            config.get_key_path()

    def test_cannot_set_options_passed_by_command_line(self):
        self.options["key_path"] = "ethereum_classic"
        config = SimpleConfig(options=self.options)
        config.set_key_path(KeyPath.Ethereum)
        self.assertEqual(KeyPath.EthereumClassic, config.get_key_path())
        self.assertFalse(config.is_modifiable(SimpleConfig.KEY_PATH))

    def test_set_key_path_is_saved(self):
        config = SimpleConfig(self.options)
        config.set_key_path(KeyPath.EthereumClassic)
        self.assertEqual({"key_path": "ethereum_classic"}, read_user_config(self.hwsigner_dir))
        config = SimpleConfig(self.options)
        self.assertEqual(KeyPath.EthereumClassic, config.get_key_path())

    def test_forget_config(self):
        self.options["forget_config"] = True
        config = SimpleConfig(self.options)
        config.set_key_path(KeyPath.EthereumClassic)
        self.assertEqual(KeyPath.EthereumClassic, config.get_key_path())
        self.assertFalse(os.path.exists(os.path.join(self.hwsigner_dir, "config")))

    def test_user_config_is_not_written_with_read_only_config(self):
        """The user config does not contain command-line options when saved."""
        fake_read_user = lambda _: {"something": "a"}
        read_user_dir = lambda : self.user_dir
        self.options.update({"something": "c"})
        config = SimpleConfig(options=self.options,
                              read_user_config_function=fake_read_user,
                              read_user_dir_function=read_user_dir)
        config.save_user_config()
        with open(os.path.join(self.hwsigner_dir, "config"), "r") as f:
            contents = f.read()
        result = ast.literal_eval(contents)
        self.assertEqual({"something": "a"}, result)

    def test_configvars_set_and_get(self):
        config = SimpleConfig(self.options)
        self.assertEqual("log_to_file", SimpleConfig.LOG_TO_FILE.key())
        self.assertIs(False, config.LOG_TO_FILE)
        config.LOG_TO_FILE = True
        self.assertIs(True, config.LOG_TO_FILE)
        self.assertIs(True, config.get("log_to_file"))
        config.LOG_TO_FILE = None
        self.assertFalse(config.is_set(SimpleConfig.LOG_TO_FILE))

    def test_configvars_type_check(self):
        config = SimpleConfig(self.options)
        with self.assertRaises(ValueError):
            config.LOG_TO_FILE = "yes"

    def test_configvars_convert_user_config_values(self):
        config = SimpleConfig(self.options, read_user_config_function=lambda _: {"log_to_file": 1})
        self.assertIs(True, config.LOG_TO_FILE)
        self.assertIsNone(config.VERBOSITY)


class TestUserConfig(HwSignerTestCase):

    def setUp(self):
        super(TestUserConfig, self).setUp()
        self.user_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.user_dir)
        super(TestUserConfig, self).tearDown()

    def test_no_path_means_empty_config(self):
        self.assertEqual({}, read_user_config(None))

    def test_path_without_config_file_means_empty_config(self):
        self.assertEqual({}, read_user_config(self.user_dir))

    def test_path_with_invalid_config_file(self):
        with open(os.path.join(self.user_dir, "config"), "w") as f:
            f.write("{ invalid json")
        with self.assertRaises(ValueError):
            read_user_config(self.user_dir)

    def test_config_file_must_hold_a_dict(self):
        with open(os.path.join(self.user_dir, "config"), "w") as f:
            f.write("[1, 2]")
        with self.assertRaises(ValueError):
            read_user_config(self.user_dir)
