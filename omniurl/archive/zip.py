# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

""" """

import posixpath

from omniurl.archive.reader import fix_entry_path, open_zip_from_file
from omniurl.archive.tar import split_archive_url
from omniurl.url import Url, UrlKind
from omniurl.util import get_format


class ZipUrl(Url):
    """Zip URLs address an entry in a zip archive, like 'zip:/data/archive.zip!/dir/file.csv'.

    Zip files must be read from a seekable file, so if the archive URL is not a file URL, the
    archive is first downloaded to a local file with
    :py:meth:`omniurl.context.Context.get_local_path`.
    """

    kind = UrlKind.ZIP

    def __init__(self, path, archive_url):

        self.path = path.lstrip('/') if path != '.' else ''
        self.archive_url = archive_url

        super().__init__(archive_url.context)

    @classmethod
    def parse(cls, u_str, context=None):
        from omniurl.url import parse_any_or_file_url

        archive, path = split_archive_url(u_str, 'zip')

        return cls(path, parse_any_or_file_url(archive, context=context))

    @classmethod
    def parse_valid(cls, u_str, context=None, cancel=None):
        return cls.parse(u_str, context=context).validate(cancel=cancel)

    def validate(self, cancel=None):
        """Return self, if the entry exists in the archive. Raise NotFound otherwise"""
        from omniurl.exceptions import NotFound

        with self.open_archive(cancel=cancel) as zip_reader:
            if zip_reader.has(self.path):
                return self

        raise NotFound("path '{}' not found in zip: {}".format(self.path, self.archive_url))

    def valid_relative(self, path, cancel=None):
        return self.relative(path).validate(cancel=cancel)

    @property
    def key(self):
        return 'zip:{}!/{}'.format(self.archive_url, self.path)

    @property
    def format(self):
        return get_format(self.path)

    def base(self):
        path = posixpath.dirname(self.path)
        if path != '/':
            path += '/'

        return ZipUrl(path, self.archive_url)

    def relative(self, path):
        return ZipUrl(posixpath.normpath(posixpath.join(self.path, path)), self.archive_url)

    def list(self, cancel=None):
        """Return ZipUrls for all of the files in the archive"""

        urls = []

        def add(info):
            if not info.is_dir():
                urls.append(ZipUrl(fix_entry_path(info.filename), self.archive_url))
            return True

        with self.open_archive(cancel=cancel) as zip_reader:
            zip_reader.iterate(add)

        return urls

    def open(self, cancel=None):
        from omniurl.exceptions import NotFound

        zip_reader = self.open_archive(cancel=cancel)

        try:
            entry_reader = zip_reader.open(self.path)
        except Exception:
            zip_reader.close()
            raise

        if entry_reader is None:
            zip_reader.close()
            raise NotFound("path '{}' not found in archive: {}".format(self.path, self.archive_url))

        return entry_reader

    def open_archive(self, cancel=None):
        """Open the archive, and return a :py:class:`omniurl.archive.reader.ZipReader`"""

        return open_zip_from_file(self.context.open_file(self.archive_url, cancel=cancel))
