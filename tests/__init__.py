import unittest
import threading
import tempfile
import shutil

import hwsigner
import hwsigner.logging
from hwsigner.logging import Logger


hwsigner.logging._configure_stderr_logging(verbosity="*")


class HwSignerTestCase(unittest.TestCase, Logger):
    """Base class for our unit tests."""

    # some unit tests are modifying globals... so we run sequentially:
    _test_lock = threading.Lock()

    def __init__(self, *args, **kwargs):
        Logger.__init__(self)
        unittest.TestCase.__init__(self, *args, **kwargs)

    def setUp(self):
        have_lock = self._test_lock.acquire(timeout=0.1)
        if not have_lock:
            # This can happen when trying to run the tests in parallel,
            # or if a prior test raised during `setUp` and never released the lock.
            raise Exception("timed out waiting for test_lock")
        super().setUp()
        self.hwsigner_path = tempfile.mkdtemp(prefix="hwsigner-unittest-base-")

    def tearDown(self):
        shutil.rmtree(self.hwsigner_path)
        super().tearDown()
        self._test_lock.release()
