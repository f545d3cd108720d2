# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

""" """

import logging
import os
import re

logger = logging.getLogger('omniurl.util')


def path2url(path):
    "Convert a pathname to a file URL"

    from urllib.parse import urljoin
    from urllib.request import pathname2url

    return urljoin('file:', pathname2url(path))


def url2path(path):
    """Convert the path part of a file URL to an OS path"""
    from urllib.parse import unquote

    path = unquote(path)

    # '/C:/foo' is the path part of 'file:///C:/foo'
    if re.match("/[a-zA-Z]:", path):
        path = path.lstrip('/')

    if os.sep != '/':
        path = path.replace('/', os.sep)

    return path


def get_format(path):
    """Return the format of a path, derived from its extension, without the leading '.'.
    Returns an empty string if there is no extension.

        >>> get_format('x.tar.gz')
        'tar.gz'
        >>> get_format('config.YML')
        'yaml'

    :param path: A file name or path
    """

    from os.path import splitext

    if not path:
        return ''

    ext = splitext(path)[1][1:]

    if not ext:
        return ''

    ext = ext.lower()

    # Tarballs: 'name.tar.X' is 'tar.X'
    stem = path[:-len(ext) - 1]
    if len(stem) > 4 and stem.lower().endswith('.tar'):
        return 'tar.' + ext

    return {
        'yml': 'yaml',
        'tgz': 'tar.gz',
    }.get(ext, ext)


def sanitize_filename(name, max_len=64):
    """Replace characters that are unsafe in file names"""

    name = re.sub(r'[^A-Za-z0-9._-]+', '_', name).strip('_.')

    return name[:max_len]


def temporary_name(key):
    """Return a new, unique file name for a temporary resource derived from ``key``"""
    from uuid import uuid4

    return 'omniurl-{}-{}'.format(sanitize_filename(key), uuid4().hex[:12])


def copy_file_or_flo(input_, output, buffer_size=64 * 1024, cb=None, cancel=None):
    """ Copy a file name or file-like-object to another file name or file-like object"""

    from os import makedirs
    from os.path import isdir, dirname

    from omniurl.exceptions import Cancelled

    assert bool(input_)
    assert bool(output)

    input_opened = False
    output_opened = False

    try:
        if isinstance(input_, str):
            input_ = open(input_, 'rb')
            input_opened = True

        if isinstance(output, str):

            if dirname(output) and not isdir(dirname(output)):
                makedirs(dirname(output))

            output = open(output, 'wb')
            output_opened = True

        cumulative = 0
        while True:
            if cancel is not None and cancel.is_set():
                raise Cancelled("Copy cancelled")

            buf = input_.read(buffer_size)
            if not buf:
                break
            output.write(buf)

            cumulative += len(buf)
            if cb:
                cb(len(buf), cumulative)

        return cumulative

    finally:
        if input_opened:
            input_.close()

        if output_opened:
            output.close()


DEFAULT_CACHE_NAME = 'omniurl'


def get_cache(cache_name=None):
    """Return a filesystem for storing downloaded files and clones.

    If the environmental variable ``{CACHE_NAME}_CACHE`` is set, the cache is an
    OSFS rooted at that directory. Otherwise it is a temporary filesystem, which
    is removed when it is closed.
    """

    from fs.osfs import OSFS
    from fs.tempfs import TempFS
    from fs.errors import CreateFailed

    cache_name = cache_name or DEFAULT_CACHE_NAME

    env_var = (cache_name + '_cache').upper()

    cache_dir = os.getenv(env_var, None)

    if cache_dir:
        try:
            return OSFS(cache_dir, create=True)
        except CreateFailed as e:
            from omniurl.exceptions import ConfigurationError
            raise ConfigurationError("Failed to create cache '{}' from {}: {}"
                                     .format(cache_dir, env_var, e)) from e
    else:
        return TempFS(identifier='-' + cache_name.lower())


def delete_temporary_file(path):
    """Delete a temporary file. A file that is already gone is not an error"""

    try:
        os.remove(path)
        logger.info("deleted temporary file '{}'".format(path))
    except FileNotFoundError:
        logger.info("temporary file already deleted '{}'".format(path))
    except OSError as e:
        logger.error("could not delete temporary file '{}': {}".format(path, e))
        raise


def delete_temporary_dir(path):
    """Delete a temporary directory and everything in it. A directory that is already gone
    is not an error"""
    import shutil

    try:
        shutil.rmtree(path)
        logger.info("deleted temporary dir '{}'".format(path))
    except FileNotFoundError:
        logger.info("temporary dir already deleted '{}'".format(path))
    except OSError as e:
        logger.error("could not delete temporary dir '{}': {}".format(path, e))
        raise
