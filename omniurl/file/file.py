# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""File URLs, for files on the local file system"""

import os
from os.path import abspath, dirname, exists, isabs, join, normpath

from omniurl.url import Url, UrlKind
from omniurl.util import get_format, path2url, url2path


def _is_dir_path(path):
    return path.endswith('/') or path.endswith(os.sep)


class FileUrl(Url):
    """FileUrl references a file or directory in the local file system. A path that ends with
    a separator is a directory.

    The key of a FileUrl is the 'file:' URL of the absolute path. The string form is the same,
    except for relative paths, which have no absolute form, and are shown as they are.
    """

    kind = UrlKind.FILE

    def __init__(self, path, context=None):

        super().__init__(context)

        self.path = path

    @classmethod
    def from_url_string(cls, u_str, context=None):
        """Construct from a 'file:' URL string"""
        from urllib.parse import urlparse

        p = urlparse(u_str)

        path = url2path(p.path)

        if p.netloc and p.netloc != 'localhost':  # Windows UNC name
            path = '\\\\{}{}'.format(p.netloc, path)

        return cls(path, context=context)

    @classmethod
    def valid(cls, path, context=None):
        """Construct a FileUrl for an absolute path, raising NotFound if the path does not exist,
        or if it is not a directory when it ends with a separator, or not a file otherwise."""

        from omniurl.exceptions import NotFound

        is_dir = _is_dir_path(path)

        path = abspath(path)

        if is_dir:
            if not os.path.isdir(path):
                raise NotFound("URL path does not point to a directory: {}".format(path))
            path = join(path, '')

        elif not os.path.isfile(path):
            raise NotFound("URL path does not point to a file: {}".format(path))

        return cls(path, context=context)

    def valid_relative(self, path, cancel=None):
        is_dir = _is_dir_path(path)

        path = join(self.path, path)

        if is_dir:
            path = join(path, '')

        return self.valid(path, context=self.context)

    @property
    def fspath(self):
        """The path as a pathlib Path"""
        import pathlib

        return pathlib.Path(self.path)

    def exists(self):
        return exists(self.path)

    def isdir(self):
        return os.path.isdir(self.path)

    @property
    def key(self):
        u = path2url(abspath(self.path))

        if _is_dir_path(self.path) and not u.endswith('/'):
            u += '/'

        return u

    @property
    def format(self):
        return get_format(self.path)

    def base(self):
        path = dirname(self.path) or '.'

        if path != '/':
            path = join(path, '')

        return FileUrl(path, context=self.context)

    def relative(self, path):
        return FileUrl(normpath(join(self.path, path)), context=self.context)

    def open(self, cancel=None):
        from omniurl.exceptions import NotFound
        from omniurl.stream import reader

        try:
            f = open(self.path, 'rb')
        except FileNotFoundError as e:
            raise NotFound("File not found: {}".format(self.path)) from e

        if cancel is not None:
            return reader(f, cancel=cancel)

        return f

    def __str__(self):
        if isabs(self.path):
            return self.key
        else:
            return self.path
