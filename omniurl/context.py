# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""The Context holds the state shared by a group of URLs: URL mappings, per-host credentials and
HTTP transports, and the local files and directories that have been downloaded or cloned for
URLs that aren't local."""

import logging
import threading
from collections import namedtuple
from os.path import exists

logger = logging.getLogger('omniurl.context')

Credentials = namedtuple('Credentials', 'username password token')

# Seconds to wait for an HTTP connection, and between bytes of a response
DEFAULT_TIMEOUT = (10, 60)


def host_of(u_str):
    """Return the host and port of a URL string, without user info"""
    from urllib.parse import urlparse

    netloc = urlparse(u_str).netloc

    return netloc.rsplit('@', 1)[-1]


class Context(object):
    """Context objects resolve URL strings, and cache local copies of the resources that URLs
    refer to, so that each download or clone is done once. Call :py:meth:`release` to delete the
    local copies, or use the Context as a context manager.

    The mapping table and the caches are protected by a lock. The credentials and HTTP adapter
    tables are not, so they should be set up before the Context is shared between threads.
    """

    def __init__(self, cache=None, registry=None, timeout=DEFAULT_TIMEOUT):
        """
        :param cache: A PyFilesystem filesystem, with system paths, in which to create temporary
            files and directories. Defaults to the result of :py:func:`omniurl.util.get_cache`
        :param registry: An :py:class:`omniurl.internal.InternalRegistry` for ``internal:``
            URLs. Defaults to the process-wide registry.
        :param timeout: The requests timeout for HTTP requests, a (connect, read) tuple
        """

        self._cache = cache
        self._owns_cache = False
        self._registry = registry
        self.timeout = timeout

        self.mappings = {}
        self.transformers = [self.get_mapping]

        self.files = {}  # Url key -> local file
        self.dirs = {}  # Url key -> local directory

        self.http_adapters = {}
        self.credentials = {}
        self._sessions = {}

        self.lock = threading.RLock()

    #
    # URL strings
    #

    def transform(self, from_url):
        """Run the transformers in order, returning the result of the first one that
        transforms the URL string, or None"""

        for transformer in self.transformers:
            to_url = transformer(from_url)
            if to_url:
                return to_url

        return None

    def add_transformer(self, transformer):
        """Add a transformer, a callable that takes a URL string and returns a replacement
        string, or None"""
        self.transformers.append(transformer)

    def map(self, from_url, to_url):
        """Map one URL string to another. Set ``to_url`` to an empty string to delete the
        mapping"""

        with self.lock:
            if not to_url:
                self.mappings.pop(from_url, None)
            else:
                self.mappings[from_url] = to_url

    def get_mapping(self, from_url):
        with self.lock:
            return self.mappings.get(from_url)

    def url(self, u_str):
        """Parse a URL string in this context. See :py:func:`omniurl.url.parse_app_url`"""
        from omniurl.url import parse_app_url

        return parse_app_url(u_str, context=self)

    def valid_url(self, u_str, origins=(), cancel=None):
        """Parse and validate a URL string in this context. See
        :py:func:`omniurl.url.parse_valid_url`"""
        from omniurl.url import parse_valid_url

        return parse_valid_url(u_str, origins, context=self, cancel=cancel)

    #
    # Hosts
    #

    def set_http_adapter(self, host, adapter):
        """Use a requests transport adapter for all HTTP requests to a host. Not thread-safe."""

        self.http_adapters[host] = adapter
        self._sessions.pop(host, None)

    def get_http_adapter(self, host):
        return self.http_adapters.get(host)

    def set_credentials(self, host, username=None, password=None, token=None):
        """Set credentials for a host. Not thread-safe."""

        self.credentials[host] = Credentials(username, password, token)

    def get_credentials(self, host):
        return self.credentials.get(host)

    def session(self, host):
        """Return a requests Session for a host, using the adapter set for it, if any"""
        import requests

        try:
            return self._sessions[host]
        except KeyError:
            pass

        s = requests.Session()

        adapter = self.get_http_adapter(host)

        if adapter is not None:
            s.mount('http://{}'.format(host), adapter)
            s.mount('https://{}'.format(host), adapter)

        self._sessions[host] = s

        return s

    def http_auth(self, host):
        """Return a requests auth object and extra headers for the credentials set for a host"""
        from requests.auth import HTTPBasicAuth

        credentials = self.get_credentials(host)

        if credentials is None:
            return None, {}
        elif credentials.token:
            return None, {'Authorization': 'Bearer {}'.format(credentials.token)}
        else:
            return HTTPBasicAuth(credentials.username or '', credentials.password or ''), {}

    #
    # Internal URLs
    #

    @property
    def registry(self):
        if self._registry is None:
            from omniurl.internal import default_registry
            self._registry = default_registry

        return self._registry

    #
    # Local copies
    #

    @property
    def cache(self):
        if self._cache is None:
            from omniurl.util import get_cache
            self._cache = get_cache()
            self._owns_cache = True

        return self._cache

    def get_local_path(self, url, cancel=None):
        """Return a path in the local filesystem for the content of a URL, downloading it
        to a temporary file if it isn't already a file URL, or has not already been downloaded.

        The lock is held for the whole download, so a resource is only downloaded once.

        :param url: A Url object
        :param cancel: A :py:class:`threading.Event` to abort the download
        :return: path string
        """
        from omniurl.url import UrlKind
        from omniurl.util import temporary_name
        from omniurl.web.download import download

        if url.kind == UrlKind.FILE:
            return url.path

        key = url.key

        with self.lock:
            path = self.files.get(key)

            if path is not None:
                if exists(path):
                    logger.debug("Found '{}' as local file '{}'".format(key, path))
                    return path
                else:
                    del self.files[key]

            path = download(url, self.cache, temporary_name(key), cancel=cancel)

            self.files[key] = path

            return path

    def open_file(self, url, cancel=None):
        """Open the local copy of a URL"""

        return open(self.get_local_path(url, cancel=cancel), 'rb')

    def make_temporary_dir(self, key):
        """Create an empty directory in the cache for ``key``, returning its system path"""
        from omniurl.util import temporary_name

        name = temporary_name(key)
        self.cache.makedir(name)

        return self.cache.getsyspath(name)

    def release(self):
        """Delete all of the local files and directories, and clear the caches. If deletions
        fail, the last error is raised after all of them have been tried."""
        from omniurl.util import delete_temporary_file, delete_temporary_dir

        error = None

        with self.lock:
            for path in self.files.values():
                try:
                    delete_temporary_file(path)
                except OSError as e:
                    error = e

            self.files = {}

            for path in self.dirs.values():
                try:
                    delete_temporary_dir(path)
                except OSError as e:
                    error = e

            self.dirs = {}

        if error is not None:
            raise error

    def close(self):
        """Release the local copies, and close the cache filesystem"""

        try:
            self.release()
        finally:
            for s in self._sessions.values():
                s.close()
            self._sessions = {}

            if self._owns_cache:
                self._cache.close()
                self._cache = None
                self._owns_cache = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
