"""
Tests for two-phase configuration resolution.
"""

import os
import shutil
import tempfile
import unittest

from bootstrap.errors import ConfigError, MandatoryParameterMissing
from bootstrap.resolver import build_registry, discover_config_file, resolve
from bootstrap.options import DatabaseOptions, GeneralOptions, ResolvedOptions, ServerOptions


class TestConfigResolver(unittest.TestCase):
    """Test cases for config file discovery and full resolution"""

    def setUp(self):
        """Set up test fixtures"""
        self.temp_dir = tempfile.mkdtemp()
        self.local_conf = os.path.join(self.temp_dir, 'kvstore.conf')
        self.system_conf = os.path.join(self.temp_dir, 'etc-kvstore.conf')
        self.candidates = (self.local_conf, self.system_conf)

    def tearDown(self):
        """Clean up test fixtures"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, path: str, content: str) -> str:
        with open(path, 'w') as f:
            f.write(content)
        return path

    def test_discover_none(self):
        """Test discovery without explicit file and no default files"""
        self.assertEqual(discover_config_file(['--db.path=/tmp/db'], self.candidates), '')

    def test_discover_order(self):
        """Test that the local default file wins over the system one"""
        self._write(self.system_conf, "")
        self.assertEqual(discover_config_file([], self.candidates), self.system_conf)

        self._write(self.local_conf, "")
        self.assertEqual(discover_config_file([], self.candidates), self.local_conf)
        self.assertEqual(discover_config_file([], self.candidates), self.local_conf)

    def test_discover_explicit(self):
        """Test an explicit --configfile among unknown arguments"""
        path = self._write(os.path.join(self.temp_dir, 'custom.conf'), "")
        self._write(self.local_conf, "")
        argv = ['--unknown=1', f'--configfile={path}', '--foreground']
        self.assertEqual(discover_config_file(argv, self.candidates), path)

    def test_discover_explicit_missing(self):
        """Test that an explicit config file must exist"""
        missing = os.path.join(self.temp_dir, 'missing.conf')
        with self.assertRaises(ConfigError) as ctx:
            discover_config_file([f'--configfile={missing}'], self.candidates)
        self.assertIn(missing, str(ctx.exception))

    def test_write_buffer_mode_default_override(self):
        """Test that the registry default of the write buffer mode is retuned"""
        options = ResolvedOptions(GeneralOptions(), DatabaseOptions(), ServerOptions())
        registry = build_registry(options)

        self.assertEqual(options.database.write_buffer_mode_str, 'adaptive')
        self.assertEqual(registry.get('db.write-buffer.mode').default, 'adaptive')

    def test_resolve_command_line_only(self):
        """Test resolution from the command line alone"""
        resolution = resolve(['--db.path=/tmp/db', '--foreground',
                              '--server.interface.port=9000'], self.candidates)

        self.assertIsNone(resolution.informational)
        options = resolution.options
        self.assertEqual(options.general.db_path, '/tmp/db')
        self.assertTrue(options.general.foreground)
        self.assertEqual(options.general.configfile, '')
        self.assertEqual(options.server.interface_port, 9000)
        self.assertEqual(options.database.compression_algorithm, 'lz4')
        self.assertEqual(options.database.hashing_algorithm, 'xxhash-64')

    def test_command_line_overrides_file(self):
        """Test that command-line values override config file values"""
        self._write(self.local_conf,
                    "db.path /from/file\n"
                    "storage.compression-algorithm disabled\n"
                    "log.level debug\n")
        resolution = resolve(['--storage.compression-algorithm=lz4'], self.candidates)

        database = resolution.options.database
        self.assertEqual(resolution.options.general.configfile, self.local_conf)
        self.assertEqual(resolution.options.general.db_path, '/from/file')
        self.assertEqual(database.compression_algorithm, 'lz4')
        self.assertEqual(database.log_level, 'debug')

    def test_file_overrides_default_override(self):
        """Test that a file value wins over the retuned default"""
        self._write(self.local_conf, "db.path /tmp/db\ndb.write-buffer.mode direct\n")
        resolution = resolve([], self.candidates)
        self.assertEqual(resolution.options.database.write_buffer_mode_str, 'direct')

    def test_missing_db_path(self):
        """Test that db.path is mandatory"""
        with self.assertRaises(MandatoryParameterMissing) as ctx:
            resolve(['--foreground'], self.candidates)
        self.assertEqual(ctx.exception.names, ['db.path'])

    def test_unparsable_file(self):
        """Test that errors in the config file are fatal"""
        self._write(self.local_conf, "db.path /tmp/db\nserver.interface.port many\n")
        with self.assertRaises(ConfigError):
            resolve([], self.candidates)

    def test_help(self):
        """Test that --help returns usage without reading the config file"""
        self._write(self.local_conf, "this is not a valid configuration !!!\n")
        for flag in ('--help', '-h'):
            resolution = resolve([flag], self.candidates)
            self.assertIn('KVServer version: 0.9.0-0', resolution.informational)
            self.assertIn('Engine version: 0.9.0', resolution.informational)
            self.assertIn('Data format version: 0.9', resolution.informational)
            self.assertIn('--db.path', resolution.informational)

    def test_help_with_missing_configfile(self):
        """Test that --help succeeds even when --configfile does not exist"""
        missing = os.path.join(self.temp_dir, 'missing.conf')
        for argv in (['--help', f'--configfile={missing}'],
                     [f'--configfile={missing}', '--generate-doc']):
            resolution = resolve(argv, self.candidates)
            self.assertIsNotNone(resolution.informational)

    def test_generate_doc(self):
        """Test the markdown parameter documentation"""
        resolution = resolve(['--generate-doc'], self.candidates)
        self.assertIn('| `storage.compression-algorithm` | lz4 |', resolution.informational)
        self.assertIn('| `db.write-buffer.mode` | adaptive |', resolution.informational)


if __name__ == '__main__':
    unittest.main()
