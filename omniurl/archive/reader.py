# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""Readers for tar and zip archives. A reader owns the streams it reads from, and closes them
when it is closed. Entries are found by name; a missing entry is returned as None, not raised,
so callers can tell it apart from an I/O error."""

import io
import tarfile

TARBALL_ARCHIVE_FORMATS = ('tar', 'tar.gz', 'tar.bz2', 'tar.xz')


def fix_entry_path(path):
    """Entry names are compared without a leading './'"""
    if path.startswith('./'):
        return path[2:]
    return path


def is_valid_tarball_archive_format(archive_format):
    return archive_format in TARBALL_ARCHIVE_FORMATS


def open_tarball(archive_reader, archive_format):
    """Return a TarballReader over a binary stream, which is decompressed according to the
    archive format. The reader takes ownership of ``archive_reader``."""

    from omniurl.exceptions import ArchiveError

    if not is_valid_tarball_archive_format(archive_format):
        archive_reader.close()
        raise ArchiveError("unsupported tarball archive format: '{}'".format(archive_format))

    compression_reader = None

    try:
        if archive_format == 'tar.gz':
            import gzip
            compression_reader = gzip.GzipFile(fileobj=archive_reader, mode='rb')
        elif archive_format == 'tar.bz2':
            import bz2
            compression_reader = bz2.BZ2File(archive_reader, mode='rb')
        elif archive_format == 'tar.xz':
            import lzma
            compression_reader = lzma.LZMAFile(archive_reader, mode='rb')

        tar = tarfile.open(fileobj=compression_reader or archive_reader, mode='r|')

    except Exception:
        if compression_reader is not None:
            compression_reader.close()
        archive_reader.close()
        raise

    return TarballReader(tar, archive_reader, compression_reader)


class TarballReader(object):
    """Reads entries from a tar stream, in order. Since the stream can't seek, each of
    :py:meth:`open`, :py:meth:`has` and :py:meth:`iterate` continues from where the last
    one stopped."""

    def __init__(self, tar, archive_reader, compression_reader=None):
        self.tar = tar
        self.archive_reader = archive_reader
        self.compression_reader = compression_reader

    def _members(self):
        while True:
            member = self.tar.next()
            if member is None:
                return
            yield member

    def open(self, path):
        """Return a reader for the entry, or None if there is no such entry. Closing the
        entry reader closes this reader"""

        for member in self._members():
            if fix_entry_path(member.name) == path:
                f = self.tar.extractfile(member) if member.isfile() else None
                return TarballEntryReader(self, f)

        return None

    def has(self, path):
        for member in self._members():
            if fix_entry_path(member.name) == path:
                return True

        return False

    def iterate(self, f):
        """Call ``f(member)`` for each TarInfo, until it returns False"""

        for member in self._members():
            if not f(member):
                return

    def close(self):
        """Close the tar file, the decompression stream, then the archive stream. If more
        than one fails, the first error is raised"""

        error0 = error1 = error2 = None

        try:
            self.tar.close()
        except Exception as e:
            error0 = e

        if self.compression_reader is not None:
            try:
                self.compression_reader.close()
            except Exception as e:
                error1 = e

        try:
            self.archive_reader.close()
        except Exception as e:
            error2 = e

        if error0 is not None:
            raise error0
        elif error1 is not None:
            raise error1
        elif error2 is not None:
            raise error2

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class TarballEntryReader(io.RawIOBase):
    """Reads the content of the current tar entry"""

    def __init__(self, tarball_reader, entry):
        super().__init__()
        self.tarball_reader = tarball_reader
        self._entry = entry

    def readable(self):
        return True

    def readinto(self, b):
        if self._entry is None:
            return 0

        data = self._entry.read(len(b))
        n = len(data)
        b[:n] = data
        return n

    def close(self):
        if not self.closed:
            try:
                self.tarball_reader.close()
            finally:
                super().close()


def open_zip_from_file(file):
    """Return a ZipReader for an open, seekable file. The reader takes ownership of the file"""
    from zipfile import BadZipFile, ZipFile

    from omniurl.exceptions import ArchiveError

    try:
        zf = ZipFile(file)
    except BadZipFile as e:
        file.close()
        raise ArchiveError("Not a zip file: {}".format(getattr(file, 'name', file))) from e

    return ZipReader(zf, file)


class ZipReader(object):

    def __init__(self, zf, file):
        self.zf = zf
        self.file = file

    def open(self, path):
        """Return a reader for the entry, or None if there is no such entry. Closing the
        entry reader closes this reader"""

        for info in self.zf.infolist():
            if fix_entry_path(info.filename) == path:
                return ZipEntryReader(self.zf.open(info), self)

        return None

    def has(self, path):
        return any(fix_entry_path(info.filename) == path for info in self.zf.infolist())

    def iterate(self, f):
        """Call ``f(info)`` for each ZipInfo, until it returns False"""

        for info in self.zf.infolist():
            if not f(info):
                return

    def close(self):
        try:
            self.zf.close()
        finally:
            self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ZipEntryReader(io.RawIOBase):

    def __init__(self, entry, zip_reader):
        super().__init__()
        self.entry = entry
        self.zip_reader = zip_reader

    def readable(self):
        return True

    def readinto(self, b):
        data = self.entry.read(len(b))
        n = len(data)
        b[:n] = data
        return n

    def close(self):
        if self.closed:
            return

        error = None
        try:
            self.entry.close()
        except Exception as e:
            error = e

        try:
            self.zip_reader.close()
        except Exception as e:
            if error is None:
                error = e
        finally:
            super().close()

        if error is not None:
            raise error
