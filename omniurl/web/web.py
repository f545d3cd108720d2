# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""Web URLs, for resources fetched with HTTP or HTTPS"""

from urllib.parse import parse_qs, urljoin, urlparse, urlunparse

from omniurl.url import Url, UrlKind
from omniurl.util import get_format


class WebUrl(Url):
    """URL for a resource on the web.

    This documentation only describes the differences in implementation from the super class.
    See the documentation for the superclass, :py:class:`omniurl.Url` for the default
    implementations.

    The format is taken from a ``format`` query parameter, if there is one, and otherwise from
    the extension of the path.
    """

    kind = UrlKind.NETWORK

    def __init__(self, url, context=None):

        super().__init__(context)

        self.url = url
        self._parts = urlparse(url)

    @classmethod
    def valid(cls, url, context=None, cancel=None):
        """Construct a WebUrl, checking with a HEAD request that the resource exists"""
        from omniurl.web.download import http_request

        u = cls(url, context=context)

        http_request(u.context, 'HEAD', u.url, cancel=cancel).close()

        return u

    def valid_relative(self, path, cancel=None):
        return self.valid(urljoin(self.url, path), context=self.context, cancel=cancel)

    @property
    def host(self):
        return self._parts.netloc.rsplit('@', 1)[-1]

    @property
    def path(self):
        return self._parts.path

    @property
    def key(self):
        return self.url

    @property
    def format(self):
        format = parse_qs(self._parts.query).get('format')

        if format and format[0]:
            return format[0]

        return get_format(self._parts.path)

    def base(self):
        from posixpath import dirname

        path = dirname(self._parts.path) or '/'
        if path != '/':
            path += '/'

        return WebUrl(urlunparse(self._parts._replace(path=path)), context=self.context)

    def relative(self, path):
        return WebUrl(urljoin(self.url, path), context=self.context)

    def open(self, cancel=None):
        from omniurl.web.download import http_request, response_reader

        r = http_request(self.context, 'GET', self.url, cancel=cancel)

        return response_reader(r, cancel=cancel)
