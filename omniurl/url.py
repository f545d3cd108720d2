# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""Base class for URLs, and the functions that parse strings into URL objects"""

import enum
import logging
from os.path import isabs

logger = logging.getLogger('omniurl.url')


class UrlKind(enum.Enum):
    FILE = 'file'
    NETWORK = 'network'
    GIT = 'git'
    DOCKER = 'docker'
    TARBALL = 'tar'
    ZIP = 'zip'
    INTERNAL = 'internal'
    MOCK = 'mock'


SCHEMES = ('file', 'http', 'https', 'tar', 'zip', 'git', 'docker', 'internal')

# Kinds of URL that relative paths can be resolved against
ORIGIN_KINDS = (UrlKind.FILE, UrlKind.NETWORK, UrlKind.TARBALL, UrlKind.ZIP, UrlKind.GIT,
                UrlKind.INTERNAL)


class Url(object):
    """Base class for URLs.

    Every URL addresses one resource that can be opened for reading. The concrete classes
    are a closed set, one for each kind of :py:class:`UrlKind`; code that needs to treat the
    kinds differently checks ``url.kind``.

    The common operations are:

    - ``str(url)``. The URL string. This is the same as ``key``, except for relative file URLs
    - ``key``. A canonical string that identifies the resource, for use in maps and caches
    - ``format``. The format of the resource, normally drawn from the path extension
    - ``base()``. A URL for the containing directory. It may not be valid.
    - ``relative(path)``. A URL for ``path`` relative to this one, of the same kind
    - ``valid_relative(path)``. Like ``relative()``, but checks that the resource exists.
    - ``open(cancel=None)``. Open the resource, returning a binary file-like object.
    - ``context``. The :py:class:`omniurl.context.Context` the URL belongs to.

    URLs compare equal if their keys are equal.
    """

    kind = None

    def __init__(self, context=None):
        from omniurl.context import Context

        self._context = context if context is not None else Context()

    @property
    def context(self):
        """Return the Context for this URL"""
        return self._context

    @property
    def key(self):
        raise NotImplementedError()

    @property
    def format(self):
        raise NotImplementedError()

    def base(self):
        raise NotImplementedError()

    def relative(self, path):
        raise NotImplementedError()

    def valid_relative(self, path, cancel=None):
        raise NotImplementedError()

    def open(self, cancel=None):
        """Open the resource for reading.

        :param cancel: A :py:class:`threading.Event`. When it is set, in-progress operations
            are aborted with :py:class:`omniurl.exceptions.Cancelled`
        :return: A binary file-like object. The caller must close it.
        """
        raise NotImplementedError(("open not implemented in {} for '{}'. ")
                                  .format(self.__class__.__name__, str(self)))

    def read(self, cancel=None):
        """Return the whole content of the resource"""

        with self.open(cancel=cancel) as f:
            return f.read()

    def __str__(self):
        return self.key

    def __repr__(self):
        return "<{} {}>".format(self.__class__.__name__, str(self))

    def __eq__(self, other):
        return isinstance(other, Url) and self.key == other.key

    def __hash__(self):
        return hash(self.key)


def _split_scheme(u_str):
    """Return the scheme of a URL string, or '' if there is none.
    Raises MalformedUrlError if the string can't be parsed as a URL"""
    from urllib.parse import urlparse
    from omniurl.exceptions import MalformedUrlError

    try:
        return urlparse(u_str).scheme
    except ValueError as e:
        raise MalformedUrlError("Malformed URL '{}': {}".format(u_str, e))


def parse_app_url(u_str, context=None):
    """
    Parse a URL string and return a Url object, with the class selected by the scheme.
    A string with no scheme is a file path.

    The resource is not checked for existence; see :py:func:`parse_valid_url`.

    :param u_str: Url string
    :param context: A Context. If not specified, a new one is created
    :return: A Url object
    """

    from omniurl.context import Context
    from omniurl.exceptions import MalformedUrlError

    if isinstance(u_str, Url):
        return u_str

    if not isinstance(u_str, str):
        raise MalformedUrlError("Input isn't a string nor Url")

    context = context if context is not None else Context()

    u_str = context.transform(u_str) or u_str

    scheme = _split_scheme(u_str)

    if scheme == 'file':
        from omniurl.file.file import FileUrl
        return FileUrl.from_url_string(u_str, context=context)

    elif scheme in ('http', 'https'):
        from omniurl.web.web import WebUrl
        return WebUrl(u_str, context=context)

    elif scheme == 'tar':
        from omniurl.archive.tar import TarballUrl
        return TarballUrl.parse(u_str, context=context)

    elif scheme == 'zip':
        from omniurl.archive.zip import ZipUrl
        return ZipUrl.parse(u_str, context=context)

    elif scheme == 'git':
        from omniurl.git.git import GitUrl
        return GitUrl.parse(u_str, context=context)

    elif scheme == 'docker':
        from omniurl.docker.docker import DockerUrl
        return DockerUrl(u_str, context=context)

    elif scheme == 'internal':
        from omniurl.internal import InternalUrl
        return InternalUrl(u_str[len('internal:'):], context=context)

    elif scheme == '':
        from omniurl.file.file import FileUrl
        return FileUrl(u_str, context=context)

    raise MalformedUrlError("unsupported URL format: {}".format(u_str))


def parse_any_or_file_url(u_str, context=None):
    """Parse a string that may be either a URL or a file path.

    This is needed for Windows paths with a drive letter, like 'C:\\Dir\\file', where the drive
    would otherwise be read as a URL scheme. A Windows drive with the same name as a supported
    scheme ( such as 'http' ) must be given as a full file URL, like 'file:///http:/Dir/file'.
    """
    from omniurl.context import Context
    from omniurl.exceptions import OmniUrlError
    from omniurl.file.file import FileUrl

    context = context if context is not None else Context()

    try:
        return parse_app_url(u_str, context=context)
    except OmniUrlError:
        return FileUrl(u_str, context=context)


def parse_valid_url(u_str, origins=(), context=None, cancel=None):
    """
    Parse a URL string and check that the resource it addresses exists. Relative paths are
    tried against each of the ``origins``, in order, and the first one that exists is returned.

    :param u_str: Url string or relative path
    :param origins: Sequence of Url objects to resolve relative paths against
    :param context: A Context. If not specified, a new one is created
    :param cancel: A :py:class:`threading.Event` to abort network operations
    :return: A Url object
    """

    from omniurl.context import Context
    from omniurl.exceptions import MalformedUrlError
    from omniurl.util import url2path

    if isinstance(u_str, Url):
        u_str = str(u_str)

    context = context if context is not None else Context()

    u_str = context.transform(u_str) or u_str

    try:
        scheme = _split_scheme(u_str)
    except MalformedUrlError:
        # Might be a relative path
        return _valid_relative_url(u_str, origins, context, cancel, only_file_urls=False)

    if scheme == 'file':
        from urllib.parse import urlparse
        return _valid_relative_url(url2path(urlparse(u_str).path), origins, context, cancel,
                                   only_file_urls=True)

    elif scheme in ('http', 'https'):
        from omniurl.web.web import WebUrl
        return WebUrl.valid(u_str, context=context, cancel=cancel)

    elif scheme == 'tar':
        from omniurl.archive.tar import TarballUrl
        return TarballUrl.parse_valid(u_str, context=context, cancel=cancel)

    elif scheme == 'zip':
        from omniurl.archive.zip import ZipUrl
        return ZipUrl.parse_valid(u_str, context=context, cancel=cancel)

    elif scheme == 'git':
        from omniurl.git.git import GitUrl
        return GitUrl.parse_valid(u_str, context=context, cancel=cancel)

    elif scheme == 'docker':
        from omniurl.docker.docker import DockerUrl
        return DockerUrl.valid(u_str, context=context, cancel=cancel)

    elif scheme == 'internal':
        from omniurl.internal import InternalUrl
        return InternalUrl.valid(u_str[len('internal:'):], context=context)

    elif scheme == '':
        return _valid_relative_url(u_str, origins, context, cancel, only_file_urls=False)

    raise MalformedUrlError("unsupported URL format: {}".format(u_str))


def parse_valid_any_or_file_url(u_str, origins=(), context=None, cancel=None):
    """Like :py:func:`parse_valid_url`, but if the string can't be resolved as a URL, check it as
    a file path. See :py:func:`parse_any_or_file_url`"""

    from omniurl.context import Context
    from omniurl.exceptions import OmniUrlError
    from omniurl.file.file import FileUrl

    context = context if context is not None else Context()

    try:
        return parse_valid_url(u_str, origins, context=context, cancel=cancel)
    except (OmniUrlError, OSError):
        return FileUrl.valid(u_str, context=context)


def _valid_relative_url(path, origins, context, cancel, only_file_urls):
    """Resolve a path that is either absolute, or relative to one of the origins"""

    from omniurl.exceptions import InvalidUrlError, OmniUrlError
    from omniurl.file.file import FileUrl

    if isabs(path):
        return FileUrl.valid(path, context=context)

    errors = []

    for origin in origins:

        if origin.kind not in ORIGIN_KINDS:
            continue

        if only_file_urls and origin.kind != UrlKind.FILE:
            continue

        try:
            return origin.valid_relative(path, cancel=cancel)
        except (OmniUrlError, OSError) as e:
            logger.debug("'{}' not valid relative to '{}': {}".format(path, origin, e))
            errors.append((origin, e))

    raise InvalidUrlError("invalid URL: {}".format(path), errors)
