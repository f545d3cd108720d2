import io
import os
import shutil
import sys
import tempfile
import unittest
from os.path import basename, dirname, exists, join, realpath
from unittest import mock

from omniurl.cli import omniurl
from omniurl.test.support import write_tarball

CSV = b'a,b\n1,2\n'


class CliTests(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = self.tmp.name
        self.archive = write_tarball(join(self.dir, 'archive.tar'), {'a.csv': CSV})

    def tearDown(self):
        self.tmp.cleanup()

    def run_cli(self, *args):
        out = io.StringIO()

        with mock.patch.object(sys, 'argv', ['omniurl'] + list(args)), \
                mock.patch('sys.stdout', out):
            omniurl()

        return out.getvalue()

    def test_path_in_cache_dir(self):

        cache_dir = join(self.dir, 'cache')

        with mock.patch.dict(os.environ, {'OMNIURL_CACHE': cache_dir}):
            path = self.run_cli('-p', 'tar:{}!/a.csv'.format(self.archive)).strip()

        self.assertEqual(realpath(cache_dir), realpath(dirname(path)))

        with open(path, 'rb') as f:
            self.assertEqual(CSV, f.read())

    def test_path_in_temporary_dir(self):

        with mock.patch.dict(os.environ):
            os.environ.pop('OMNIURL_CACHE', None)
            path = self.run_cli('-p', 'tar:{}!/a.csv'.format(self.archive)).strip()

        try:
            self.assertTrue(exists(path))
            self.assertTrue(basename(dirname(path)).startswith('omniurl-'))

            with open(path, 'rb') as f:
                self.assertEqual(CSV, f.read())
        finally:
            shutil.rmtree(dirname(path))

    def test_info(self):

        out = self.run_cli('-i', 'tar:{}!/a.csv'.format(self.archive))

        self.assertIn('TarballUrl', out)
        self.assertIn('csv', out)

    def test_error(self):

        with mock.patch('sys.stderr', io.StringIO()) as err:
            with self.assertRaises(SystemExit) as cm:
                self.run_cli('-c', join(self.dir, 'missing.csv'))

        self.assertEqual(1, cm.exception.code)
        self.assertIn('ERROR', err.getvalue())


if __name__ == '__main__':
    unittest.main()
