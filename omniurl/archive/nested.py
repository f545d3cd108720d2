# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""Decode a gzipped tarball that is an entry in another tarball, as a stream.

This is how the first layer of a container image is read out of the tarball for the whole
image, without holding either of them in memory.
"""

import gzip
import logging
import tarfile

from omniurl.stream import Pipe, start_producer

logger = logging.getLogger('omniurl.archive.nested')


def open_first_tarball_in_tarball(reader):
    """Scan a tar stream for the first regular entry with a '.tar.gz' extension, and return a
    stream of its decompressed content.

    :param reader: A binary stream of a tar archive
    :return: A binary file-like object
    """
    from omniurl.exceptions import NotFound

    tar = tarfile.open(fileobj=reader, mode='r|')

    while True:
        member = tar.next()

        if member is None:
            raise NotFound("'*.tar.gz' entry not found in tarball")

        if member.isreg() and member.name.endswith('.tar.gz'):
            logger.debug("Decoding tarball entry '{}'".format(member.name))
            return gzip.GzipFile(fileobj=tar.extractfile(member), mode='rb')


class FirstTarballInTarballDecoder(object):
    """Runs :py:func:`open_first_tarball_in_tarball` in a producer thread, writing the decoded
    content into a pipe.

        decoder = FirstTarballInTarballDecoder(stream)
        with decoder.decode() as r:
            ...
        decoder.drain()
    """

    def __init__(self, reader, cancel=None):
        self.reader = reader
        self.pipe = Pipe(cancel=cancel)
        self._thread = None

    def decode(self):
        """Start decoding, and return the reader for the decoded content"""

        self._thread = start_producer(self._copy_first_tarball, self.pipe,
                                      name='first-tarball-in-tarball')
        return self.pipe.reader

    def drain(self):
        """Wait for the producer to finish"""
        if self._thread is not None:
            self._thread.join()

    def _copy_first_tarball(self, writer):
        from omniurl.util import copy_file_or_flo

        with open_first_tarball_in_tarball(self.reader) as layer:
            copy_file_or_flo(layer, writer, cancel=self.pipe.cancel)
