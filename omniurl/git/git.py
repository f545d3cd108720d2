# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""Git URLs address a file in a git repository, like
'git:https://github.com/example/repo.git#v2!/path/to/file.yaml'.

The fragment of the repository URL is the reference ( branch name, or full reference name )
to check out, and user info in the repository URL is used as credentials for cloning. The
credentials are removed from the repository URL, so they never appear in the key or the string
form of the URL.

Repositories are cloned with the ``git`` program, shallow and without tags, into a temporary
directory owned by the Context, and the clone is shared by all URLs for the same repository
and reference.
"""

import logging
import os
import posixpath
import shutil
import subprocess
from os.path import exists, join
from urllib.parse import unquote, urlparse, urlunparse

from omniurl.archive.tar import split_archive_url
from omniurl.url import Url, UrlKind
from omniurl.util import get_format

logger = logging.getLogger('omniurl.git')

# Seconds between checks of the cancel event while git runs
POLL_INTERVAL = 0.1


def run_git(args, cwd=None, cancel=None, config=None):
    """Run a git command, returning its standard output.

    :param args: Arguments to git
    :param cwd: Working directory
    :param cancel: A :py:class:`threading.Event`. If it is set, git is killed
    :param config: Dict of configuration values for this command only, passed with '-c'
    :return: Output string
    """

    from omniurl.exceptions import Cancelled, DownloadError, NotImplementedUrlError

    git = shutil.which('git')

    if git is None:
        raise NotImplementedUrlError("git URLs need the 'git' program, which was not found")

    cmd = [git]
    for k, v in (config or {}).items():
        cmd += ['-c', '{}={}'.format(k, v)]
    cmd += list(args)

    env = dict(os.environ)
    env['GIT_TERMINAL_PROMPT'] = '0'

    proc = subprocess.Popen(cmd, cwd=cwd, env=env, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                            stdin=subprocess.DEVNULL, universal_newlines=True)

    while True:
        try:
            out, err = proc.communicate(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            if cancel is not None and cancel.is_set():
                proc.kill()
                proc.communicate()
                raise Cancelled("git {} cancelled".format(args[0]))

    if proc.returncode != 0:
        raise DownloadError("git {} failed: {}".format(args[0], err.strip()))

    return out


def short_reference_name(name):
    for prefix in ('refs/heads/', 'refs/tags/', 'refs/remotes/'):
        if name.startswith(prefix):
            return name[len(prefix):]

    return name


class GitUrl(Url):

    kind = UrlKind.GIT

    def __init__(self, path, repository_url, context=None):

        super().__init__(context)

        self.path = path.lstrip('/') if path != '.' else ''
        self.username = None
        self.password = None
        self.reference = None

        p = urlparse(repository_url)

        if p.username is not None:
            self.username = unquote(p.username)
            if p.password is not None:
                self.password = unquote(p.password)

        self.reference = p.fragment or None

        # Don't store user info
        netloc = p.netloc.rsplit('@', 1)[-1]

        self.repository_url = urlunparse(p._replace(netloc=netloc, fragment=''))

        self._clone_path = None

    @classmethod
    def parse(cls, u_str, context=None):
        repository_url, path = split_archive_url(u_str, 'git')

        return cls(path, repository_url, context=context)

    @classmethod
    def parse_valid(cls, u_str, context=None, cancel=None):
        return cls.parse(u_str, context=context).validate(cancel=cancel)

    def validate(self, cancel=None):
        """Return self if the path exists in the repository. Raise NotFound otherwise"""
        from omniurl.exceptions import NotFound

        clone_path = self.open_repository(cancel=cancel)

        if not exists(join(clone_path, self.path)):
            raise NotFound("path '{}' not found in git repository: {}"
                           .format(self.path, self.repository_url))

        return self

    def valid_relative(self, path, cancel=None):
        return self.relative(path).validate(cancel=cancel)

    def _copy(self, path):
        u = GitUrl.__new__(GitUrl)
        u.__dict__.update(self.__dict__)
        u.path = path.lstrip('/') if path != '.' else ''
        return u

    @property
    def repository_key(self):
        """Key for the clone, which is shared by URLs with the same repository and reference"""
        if self.reference:
            return 'git:{}#{}'.format(self.repository_url, self.reference)
        else:
            return 'git:{}'.format(self.repository_url)

    @property
    def key(self):
        return '{}!/{}'.format(self.repository_key, self.path)

    @property
    def format(self):
        return get_format(self.path)

    def base(self):
        path = posixpath.dirname(self.path)
        if path != '/':
            path += '/'

        return self._copy(path)

    def relative(self, path):
        return self._copy(posixpath.normpath(posixpath.join(self.path, path)))

    def open(self, cancel=None):
        from omniurl.exceptions import NotFound
        from omniurl.stream import reader

        clone_path = self.open_repository(cancel=cancel)

        try:
            f = open(join(clone_path, self.path), 'rb')
        except FileNotFoundError as e:
            raise NotFound("path '{}' not found in git repository: {}"
                           .format(self.path, self.repository_url)) from e

        if cancel is not None:
            return reader(f, cancel=cancel)

        return f

    def open_repository(self, cancel=None):
        """Clone the repository, if it has not already been cloned in this Context, and return
        the path to the clone.

        The Context lock is held for the entire clone."""

        from omniurl.util import delete_temporary_dir

        if self._clone_path is not None and exists(self._clone_path):
            return self._clone_path

        context = self.context
        key = self.repository_key

        with context.lock:

            clone_path = context.dirs.get(key)

            if clone_path is not None:
                if exists(clone_path):
                    logger.debug("Found clone of '{}' in '{}'".format(key, clone_path))
                    self._clone_path = clone_path
                    return clone_path
                else:
                    del context.dirs[key]

            clone_path = context.make_temporary_dir(key)

            try:
                self._clone(clone_path, cancel)

                reference = self.find_reference(clone_path)

                if reference is not None:
                    run_git(['checkout', '--quiet', reference], cwd=clone_path, cancel=cancel)

            except BaseException:
                delete_temporary_dir(clone_path)
                raise

            context.dirs[key] = clone_path
            self._clone_path = clone_path

            return clone_path

    def _clone(self, clone_path, cancel):
        logger.info("Cloning '{}' to '{}'".format(self.repository_url, clone_path))

        run_git(['clone', '--quiet', '--depth', '1', '--no-single-branch', '--no-tags',
                 self.repository_url, clone_path],
                cancel=cancel, config=self._auth_config())

    def pull(self, cancel=None):
        """Update the clone from the repository"""

        clone_path = self.open_repository(cancel=cancel)

        run_git(['pull', '--quiet', '--ff-only'], cwd=clone_path, cancel=cancel,
                config=self._auth_config())

    def find_reference(self, clone_path):
        """Return the full name of the reference in the clone that matches this URL's reference,
        or None if the URL has no reference. Raises NotFound if there is no match"""

        from omniurl.exceptions import NotFound

        if not self.reference:
            return None

        names = run_git(['for-each-ref', '--format=%(refname)'], cwd=clone_path).split()

        for name in names:
            short = short_reference_name(name)

            if self.reference in (name, short) or short == 'origin/' + self.reference:
                return name

        raise NotFound("reference '{}' not found in git repository: {}"
                       .format(self.reference, self.repository_url))

    def _auth_config(self):
        """Return git configuration for HTTP basic authentication, from the credentials in the
        repository URL, or those set in the Context for the host"""
        import base64

        p = urlparse(self.repository_url)

        if p.scheme not in ('http', 'https'):
            return {}

        username, password = self.username, self.password

        if username is None:
            credentials = self.context.get_credentials(p.netloc)

            if credentials is None:
                return {}

            username = credentials.username or 'git'
            password = credentials.password or credentials.token

        token = base64.b64encode('{}:{}'.format(username, password or '').encode('utf-8'))

        return {'http.extraHeader': 'Authorization: Basic {}'.format(token.decode('ascii'))}
