# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""Internal URLs, like 'internal:config/defaults.yaml', address content held in an
:py:class:`InternalRegistry` in this process.

The content for a path is either bytes, or a provider: an object with an
``open_path(path, cancel=None)`` method that returns a binary file-like object. Other content
is converted to a string and then encoded to bytes.
"""

import io
import logging
import posixpath
import threading

from omniurl.url import Url, UrlKind
from omniurl.util import get_format

logger = logging.getLogger('omniurl.internal')


def is_provider(content):
    return callable(getattr(content, 'open_path', None))


def fix_content(content):
    """Convert content to bytes, unless it is a provider"""

    if content is None:
        return b''
    elif is_provider(content):
        return content
    elif isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)
    else:
        return str(content).encode('utf-8')


class InternalRegistry(object):
    """Maps internal paths to content. Safe for concurrent use."""

    def __init__(self):
        self._content = {}
        self._lock = threading.Lock()

    def register(self, path, content):
        """Register content for a path. Raises an error if the path is already registered"""
        from omniurl.exceptions import OmniUrlError

        content = fix_content(content)

        with self._lock:
            if path in self._content:
                raise OmniUrlError("internal URL conflict: {}".format(path))

            self._content[path] = content

        logger.debug("registered internal URL '{}'".format(path))

    def update(self, path, content):
        """Register content for a path, replacing any that is already registered"""

        content = fix_content(content)

        with self._lock:
            self._content[path] = content

    def deregister(self, path):
        with self._lock:
            self._content.pop(path, None)

    def get(self, path):
        """Return the content for a path, or None"""
        with self._lock:
            return self._content.get(path)

    def __contains__(self, path):
        with self._lock:
            return path in self._content


default_registry = InternalRegistry()


class InternalUrl(Url):
    """URL for content in the Context's :py:class:`InternalRegistry`. Content may also be set on
    the URL object itself, with :py:meth:`set_content`, in which case the registry is not used."""

    kind = UrlKind.INTERNAL

    def __init__(self, path, context=None):

        super().__init__(context)

        self.path = path
        self.content = None

    @classmethod
    def valid(cls, path, context=None):
        """Construct an InternalUrl, raising NotFound if the path is not registered"""
        from omniurl.exceptions import NotFound

        u = cls(path, context=context)

        if path not in u.context.registry:
            raise NotFound("internal URL not found: {}".format(path))

        return u

    def valid_relative(self, path, cancel=None):
        return self.valid(self.relative(path).path, context=self.context)

    def set_content(self, content):
        self.content = fix_content(content)

    @property
    def key(self):
        return 'internal:' + self.path

    @property
    def format(self):
        return get_format(self.path)

    def base(self):
        path = posixpath.dirname(self.path)
        if path and path != '/':
            path += '/'

        return InternalUrl(path, context=self.context)

    def relative(self, path):
        path = posixpath.normpath(posixpath.join(self.path, path))

        return InternalUrl(path, context=self.context)

    def open(self, cancel=None):
        from omniurl.exceptions import NotFound

        content = self.content

        if content is None:
            content = self.context.registry.get(self.path)

            if content is None:
                raise NotFound("internal URL not found: {}".format(self.path))

        if is_provider(content):
            return content.open_path(self.path, cancel=cancel)
        else:
            return io.BytesIO(content)


def read_to_internal_url(context, path, reader):
    """Read all of a binary stream, register it at ``path``, and return an InternalUrl for it.
    The reader is closed."""

    with reader:
        content = reader.read()

    context.registry.register(path, content)

    return InternalUrl.valid(path, context=context)


def read_to_internal_url_from_stdin(context, format=None, cancel=None):
    """Register all of stdin under a new, unique internal path. The path ends with ``format``
    as an extension, if it is given, so the URL has that format."""
    import sys
    from uuid import uuid4

    from omniurl.stream import reader

    path = '<stdin:{}>'.format(uuid4().hex)

    if format:
        path = '{}.{}'.format(path, format)

    return read_to_internal_url(context, path, reader(sys.stdin.buffer, cancel=cancel, closers=[]))


def read_to_internal_urls_from_fs(registry, filesystem, root='/', process=None):
    """Register the files in a PyFilesystem filesystem.

    :param registry: InternalRegistry
    :param filesystem: A PyFilesystem FS object
    :param root: Directory in the filesystem to walk
    :param process: Callable that takes the path of a file in the filesystem and returns the
        internal path to register it at, or None to skip it. By default, the path is used without
        the leading '/'
    """

    if process is None:
        process = lambda path: path.lstrip('/')

    for path in filesystem.walk.files(root):
        internal_path = process(path)

        if internal_path is not None:
            registry.register(internal_path, filesystem.readbytes(path))
