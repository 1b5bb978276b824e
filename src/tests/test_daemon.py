"""
Tests for daemonization, with the process-level calls mocked out.
"""

import unittest
from unittest import mock

from bootstrap import daemon
from bootstrap.errors import DaemonizationError


class _ParentExit(Exception):
    pass


class TestPosixBackgrounder(unittest.TestCase):
    """Test cases for PosixBackgrounder"""

    def setUp(self):
        """Set up test fixtures"""
        self.calls = mock.Mock()
        patches = {
            'getcwd': mock.patch.object(daemon, 'cached_getcwd', self.calls.getcwd),
            'fork': mock.patch('os.fork', self.calls.fork),
            'setsid': mock.patch('os.setsid', self.calls.setsid),
            'umask': mock.patch('os.umask', self.calls.umask),
            'chdir': mock.patch('os.chdir', self.calls.chdir),
            '_exit': mock.patch('os._exit', self.calls._exit),
        }
        for patcher in patches.values():
            patcher.start()
            self.addCleanup(patcher.stop)
        self.calls._exit.side_effect = _ParentExit

    def test_child_path(self):
        """Test the full sequence as seen by the final descendant"""
        self.calls.fork.return_value = 0

        daemon.PosixBackgrounder().background()

        self.assertEqual(
            [name for name, _, _ in self.calls.mock_calls],
            ['getcwd', 'fork', 'setsid', 'fork', 'umask', 'chdir'])
        self.calls.umask.assert_called_once_with(0)
        self.calls.chdir.assert_called_once_with('/')
        self.calls._exit.assert_not_called()

    def test_original_process_exits(self):
        """Test that the original process exits with success after forking"""
        self.calls.fork.return_value = 4242

        with self.assertRaises(_ParentExit):
            daemon.PosixBackgrounder().background()

        self.calls._exit.assert_called_once_with(0)
        self.calls.setsid.assert_not_called()

    def test_intermediate_process_exits(self):
        """Test that the session leader exits after the second fork"""
        self.calls.fork.side_effect = [0, 4243]

        with self.assertRaises(_ParentExit):
            daemon.PosixBackgrounder().background()

        self.calls.setsid.assert_called_once_with()
        self.calls._exit.assert_called_once_with(0)
        self.calls.umask.assert_not_called()

    def test_fork_failure(self):
        """Test that a failed fork aborts daemonization"""
        self.calls.fork.side_effect = OSError(11, "Resource temporarily unavailable")
        with self.assertRaises(DaemonizationError):
            daemon.PosixBackgrounder().background()

    def test_setsid_failure(self):
        """Test that a failed setsid aborts daemonization"""
        self.calls.fork.return_value = 0
        self.calls.setsid.side_effect = OSError(1, "Operation not permitted")
        with self.assertRaises(DaemonizationError):
            daemon.PosixBackgrounder().background()
        self.calls.umask.assert_not_called()

    def test_chdir_failure_is_not_fatal(self):
        """Test that failing to change directory only logs"""
        self.calls.fork.return_value = 0
        self.calls.chdir.side_effect = OSError(2, "No such file or directory")
        with self.assertLogs('bootstrap.daemon', level='ERROR'):
            daemon.PosixBackgrounder().background()


class TestGetBackgrounder(unittest.TestCase):
    """Test cases for platform selection"""

    def test_unsupported_platform(self):
        """Test that platforms without fork cannot daemonize"""
        with mock.patch.object(daemon, 'hasattr', create=True, return_value=False):
            backgrounder = daemon.get_backgrounder()
        self.assertIsInstance(backgrounder, daemon.UnsupportedBackgrounder)
        with self.assertRaises(DaemonizationError):
            backgrounder.background()

    def test_posix_platform(self):
        """Test the POSIX implementation is picked where fork exists"""
        if not hasattr(daemon.os, 'fork'):
            self.skipTest("no fork on this platform")
        self.assertIsInstance(daemon.get_backgrounder(), daemon.PosixBackgrounder)


if __name__ == '__main__':
    unittest.main()
