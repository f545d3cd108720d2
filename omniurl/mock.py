# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""Mock URLs have any scheme and fixed content. They are for testing code that takes URLs."""

import io
import posixpath

from omniurl.internal import fix_content, is_provider
from omniurl.url import Url, UrlKind
from omniurl.util import get_format


class MockUrl(Url):

    kind = UrlKind.MOCK

    def __init__(self, scheme, path, content, context=None):

        super().__init__(context)

        self.scheme = scheme
        self.path = path
        self.content = fix_content(content)

    @property
    def key(self):
        return '{}:{}'.format(self.scheme, self.path)

    @property
    def format(self):
        return get_format(self.path)

    def base(self):
        path = posixpath.dirname(self.path)
        if path and path != '/':
            path += '/'

        return MockUrl(self.scheme, path, self.content, context=self.context)

    def relative(self, path):
        path = posixpath.normpath(posixpath.join(self.path, path))

        return MockUrl(self.scheme, path, self.content, context=self.context)

    def valid_relative(self, path, cancel=None):
        return self.relative(path)

    def open(self, cancel=None):
        if is_provider(self.content):
            return self.content.open_path(self.path, cancel=cancel)
        else:
            return io.BytesIO(self.content)
