import os
import subprocess
import tempfile
import unittest
from os.path import exists, join
from unittest import mock

from omniurl.context import Context
from omniurl.exceptions import NotFound, NotImplementedUrlError
from omniurl.git.git import GitUrl
from omniurl.url import parse_app_url, parse_valid_url
from omniurl.test.support import has_git


def git(cwd, *args):
    subprocess.check_call(['git', '-c', 'user.name=Test', '-c', 'user.email=test@example.com']
                          + list(args), cwd=cwd, stdout=subprocess.DEVNULL,
                          stderr=subprocess.DEVNULL)


def commit_file(repo, path, data, message='add'):
    full_path = join(repo, path)
    os.makedirs(os.path.dirname(full_path), exist_ok=True)

    with open(full_path, 'wb') as f:
        f.write(data)

    git(repo, 'add', path)
    git(repo, 'commit', '--quiet', '-m', message)


@unittest.skipUnless(has_git(), "the git program is not installed")
class GitTests(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.repo = join(self.tmp.name, 'repo')
        os.makedirs(self.repo)

        git(self.repo, 'init', '--quiet')
        git(self.repo, 'checkout', '--quiet', '-b', 'main')
        commit_file(self.repo, 'conf/a.yaml', b'a: 1\n')
        commit_file(self.repo, 'conf/c.yaml', b'c: 1\n')

        git(self.repo, 'checkout', '--quiet', '-b', 'feature')
        commit_file(self.repo, 'conf/b.yaml', b'b: 1\n')
        git(self.repo, 'checkout', '--quiet', 'main')

        self.repo_url = 'file://' + self.repo

        self.context = Context()

    def tearDown(self):
        self.context.close()
        self.tmp.cleanup()

    def url(self, path, ref=None):
        repo_url = self.repo_url + ('#' + ref if ref else '')
        return parse_app_url('git:{}!/{}'.format(repo_url, path), context=self.context)

    def test_read(self):

        u = self.url('conf/a.yaml')

        self.assertIsInstance(u, GitUrl)
        self.assertEqual('yaml', u.format)
        self.assertEqual(b'a: 1\n', u.read())

        u = parse_valid_url(u.key, context=self.context)
        self.assertEqual(b'a: 1\n', u.read())

    def test_clone_is_shared(self):

        a = self.url('conf/a.yaml')
        c = self.url('conf/c.yaml')

        self.assertEqual(b'a: 1\n', a.read())
        self.assertEqual(b'c: 1\n', c.read())

        self.assertEqual(1, len(self.context.dirs))
        self.assertEqual(a.open_repository(), c.open_repository())

    def test_reference(self):

        with self.assertRaises(NotFound):
            self.url('conf/b.yaml').read()

        u = self.url('conf/b.yaml', ref='feature')

        self.assertEqual(b'b: 1\n', u.read())

        # A different reference is a different clone
        self.assertEqual(2, len(self.context.dirs))

        self.assertEqual(b'b: 1\n', self.url('conf/b.yaml', ref='refs/remotes/origin/feature')
                         .read())

    def test_missing_reference(self):

        with self.assertRaises(NotFound):
            self.url('conf/a.yaml', ref='no-such-branch').read()

        self.assertEqual({}, self.context.dirs)

    def test_missing_file(self):

        with self.assertRaises(NotFound):
            parse_valid_url('git:{}!/conf/missing.yaml'.format(self.repo_url),
                            context=self.context)

        with self.assertRaises(NotFound):
            self.url('conf/missing.yaml').read()

    def test_relative(self):

        origin = self.url('conf/a.yaml').base()

        u = parse_valid_url('c.yaml', [origin], context=self.context)

        self.assertEqual(b'c: 1\n', u.read())
        self.assertEqual('git:{}!/conf/c.yaml'.format(self.repo_url), u.key)

    def test_release(self):

        u = self.url('conf/a.yaml')

        clone_path = u.open_repository()
        self.assertTrue(exists(clone_path))

        self.context.release()

        self.assertFalse(exists(clone_path))

        # The clone is made again
        self.assertEqual(b'a: 1\n', u.read())

    def test_pull(self):

        u = self.url('conf/a.yaml')

        self.assertEqual(b'a: 1\n', u.read())

        commit_file(self.repo, 'conf/d.yaml', b'd: 1\n')

        with self.assertRaises(NotFound):
            self.url('conf/d.yaml').read()

        u.pull()

        self.assertEqual(b'd: 1\n', self.url('conf/d.yaml').read())


class GitMissingTests(unittest.TestCase):

    def test_no_git(self):

        with Context() as context:
            u = parse_app_url('git:https://example.com/repo.git!/a.yaml', context=context)

            with mock.patch('omniurl.git.git.shutil.which', return_value=None):
                with self.assertRaises(NotImplementedUrlError):
                    u.read()

            self.assertEqual({}, context.dirs)


if __name__ == '__main__':
    unittest.main()
