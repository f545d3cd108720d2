# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""Tarball URLs address an entry in a tar archive. The archive is itself a URL of any kind,
including another archive entry. """

import posixpath

from omniurl.archive.reader import open_tarball
from omniurl.url import Url, UrlKind
from omniurl.util import get_format


def split_archive_url(u_str, scheme):
    """Split an archive URL string, 'scheme:ARCHIVE!/PATH', into the archive URL string and the
    entry path. The split is at the last '!', so that the archive may itself be an archive
    entry URL."""
    from omniurl.exceptions import MalformedUrlError

    prefix = scheme + ':'

    if not u_str.startswith(prefix):
        raise MalformedUrlError("not a '{}' URL: {}".format(prefix, u_str))

    archive, sep, path = u_str[len(prefix):].rpartition('!')

    if not sep or not archive:
        raise MalformedUrlError("malformed '{}' URL: {}".format(prefix, u_str))

    return archive, path


class TarballUrl(Url):
    """URL for an entry in a tarball, like 'tar:http://example.com/archive.tar.gz!/dir/file.csv'

    The archive format, 'tar', 'tar.gz', 'tar.bz2' or 'tar.xz', is taken from the format of the
    archive URL unless it is given.

    The archive is read as a stream, so opening an entry does not download the whole archive
    unless the archive URL needs to be downloaded to be read.
    """

    kind = UrlKind.TARBALL

    def __init__(self, path, archive_url, archive_format=None):

        self.path = path.lstrip('/') if path != '.' else ''
        self.archive_url = archive_url
        self.archive_format = archive_format or archive_url.format

        super().__init__(archive_url.context)

    @classmethod
    def parse(cls, u_str, context=None):
        from omniurl.url import parse_any_or_file_url

        archive, path = split_archive_url(u_str, 'tar')

        return cls(path, parse_any_or_file_url(archive, context=context))

    @classmethod
    def parse_valid(cls, u_str, context=None, cancel=None):
        return cls.parse(u_str, context=context).validate(cancel=cancel)

    def validate(self, cancel=None):
        """Return self, if the entry exists in the archive. Raise NotFound otherwise"""
        from omniurl.exceptions import NotFound

        with self.open_archive(cancel=cancel) as tarball_reader:
            if tarball_reader.has(self.path):
                return self

        raise NotFound("path '{}' not found in tarball: {}".format(self.path, self.archive_url))

    def valid_relative(self, path, cancel=None):
        return self.relative(path).validate(cancel=cancel)

    @property
    def key(self):
        return 'tar:{}!/{}'.format(self.archive_url, self.path)

    @property
    def format(self):
        return get_format(self.path)

    def base(self):
        path = posixpath.dirname(self.path)
        if path != '/':
            path += '/'

        return TarballUrl(path, self.archive_url, self.archive_format)

    def relative(self, path):
        return TarballUrl(posixpath.normpath(posixpath.join(self.path, path)),
                          self.archive_url, self.archive_format)

    def list(self, cancel=None):
        """Return TarballUrls for all of the regular files in the archive"""
        from omniurl.archive.reader import fix_entry_path

        urls = []

        def add(member):
            if member.isreg():
                urls.append(TarballUrl(fix_entry_path(member.name), self.archive_url,
                                       self.archive_format))
            return True

        with self.open_archive(cancel=cancel) as tarball_reader:
            tarball_reader.iterate(add)

        return urls

    def open(self, cancel=None):
        from omniurl.exceptions import NotFound

        tarball_reader = self.open_archive(cancel=cancel)

        try:
            entry_reader = tarball_reader.open(self.path)
        except Exception:
            tarball_reader.close()
            raise

        if entry_reader is None:
            tarball_reader.close()
            raise NotFound("path '{}' not found in archive: {}".format(self.path, self.archive_url))

        return entry_reader

    def open_archive(self, cancel=None):
        """Open the archive URL, and return a :py:class:`omniurl.archive.reader.TarballReader`"""
        from omniurl.archive.reader import is_valid_tarball_archive_format
        from omniurl.exceptions import ArchiveError

        if not is_valid_tarball_archive_format(self.archive_format):
            raise ArchiveError("unsupported tarball archive format: '{}'"
                               .format(self.archive_format))

        return open_tarball(self.archive_url.open(cancel=cancel), self.archive_format)
