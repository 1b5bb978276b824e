"""
Tests for the stop token, the termination signal bridge and crash diagnostics.
"""

import io
import os
import signal
import sys
import unittest
from unittest import mock

from bootstrap.signals import CrashDiagnostics, SignalController, StopToken


class TestStopToken(unittest.TestCase):
    """Test cases for StopToken"""

    def test_one_shot(self):
        """Test that only the first request makes the transition"""
        token = StopToken()
        self.assertFalse(token.is_set())

        self.assertTrue(token.request_stop('SIGTERM'))
        self.assertFalse(token.request_stop('SIGINT'))

        self.assertTrue(token.is_set())
        self.assertEqual(token.reason, 'SIGTERM')


@unittest.skipUnless(hasattr(signal, 'SIGUSR1'), "needs POSIX signals")
class TestSignalController(unittest.TestCase):
    """Test cases for SignalController"""

    def setUp(self):
        """Set up test fixtures"""
        self.token = StopToken()
        self.controller = SignalController(self.token, signals=(signal.SIGUSR1, signal.SIGUSR2))
        self.controller.install()

    def tearDown(self):
        """Clean up test fixtures"""
        self.controller.restore()

    def test_handler_only_records(self):
        """Test that the flag changes only when signals are dispatched"""
        os.kill(os.getpid(), signal.SIGUSR1)
        self.assertFalse(self.token.is_set())

        with self.assertLogs('bootstrap.signals', level='INFO') as logs:
            self.assertEqual(self.controller.dispatch(), 1)
        self.assertTrue(self.token.is_set())
        self.assertEqual(self.token.reason, 'SIGUSR1')
        self.assertIn(f"Received signal [{int(signal.SIGUSR1)}]", logs.output[0])

    def test_second_signal(self):
        """Test that a second signal does not change the stop reason"""
        os.kill(os.getpid(), signal.SIGUSR2)
        os.kill(os.getpid(), signal.SIGUSR1)

        self.assertEqual(self.controller.dispatch(), 2)
        self.assertEqual(self.token.reason, 'SIGUSR2')
        self.assertEqual(self.controller.dispatch(), 0)

    def test_restore(self):
        """Test that previous handlers are reinstated"""
        self.controller.restore()
        self.assertIs(signal.getsignal(signal.SIGUSR1), signal.SIG_DFL)

    def test_default_signals(self):
        """Test that termination signals are bridged by default"""
        controller = SignalController(self.token)
        self.assertEqual(controller.signals, (signal.SIGINT, signal.SIGTERM))


class TestCrashDiagnostics(unittest.TestCase):
    """Test cases for CrashDiagnostics"""

    def test_excepthook_prints_and_exits(self):
        """Test that uncaught exceptions are printed, then the process exits 1"""
        stream = io.StringIO()
        diagnostics = CrashDiagnostics(stream=stream, depth=20)

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc_info = sys.exc_info()

        with mock.patch('os._exit') as exit_mock:
            diagnostics.excepthook(*exc_info)

        exit_mock.assert_called_once_with(1)
        self.assertIn("Error: uncaught RuntimeError", stream.getvalue())
        self.assertIn("boom", stream.getvalue())

    def test_install(self):
        """Test that installing enables faulthandler and the excepthook"""
        diagnostics = CrashDiagnostics()
        with mock.patch('faulthandler.enable') as enable, \
                mock.patch.object(sys, 'excepthook'):
            diagnostics.install()
            self.assertEqual(sys.excepthook, diagnostics.excepthook)
        enable.assert_called_once_with(file=sys.stderr, all_threads=True)


if __name__ == '__main__':
    unittest.main()
