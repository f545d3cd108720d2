# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

""" """

import functools
import logging

logger = logging.getLogger('omniurl.web.download')


def http_request(context, method, url, cancel=None, headers=None, stream=True):
    """
    Make an HTTP request with the session, adapter and credentials that the context has
    for the URL's host, and check the status.

    :param context: a Context
    :param method: HTTP method
    :param url: URL string
    :param cancel: A :py:class:`threading.Event`
    :param headers: Extra request headers
    :param stream: If True, don't read the body
    :return: a requests Response, with status 200
    """

    from requests import RequestException

    from omniurl.context import host_of
    from omniurl.exceptions import AccessError, DownloadError
    from omniurl.stream import call_cancellable

    host = host_of(url)
    auth, auth_headers = context.http_auth(host)

    all_headers = dict(auth_headers)
    all_headers.update(headers or {})

    logger.debug("Request {} {}".format(method, url))

    def send():
        return context.session(host).request(method, url, headers=all_headers, auth=auth,
                                             stream=stream, timeout=context.timeout)

    try:
        r = call_cancellable(send, cancel, on_abandon=close_response,
                             name='{} {}'.format(method, url))
    except RequestException as e:
        raise DownloadError("Failed to {} {}: {} ".format(method, url, e)) from e

    if r.status_code == 200:
        return r

    r.close()

    if r.status_code in (401, 403):
        raise AccessError("Access error on {} {}: HTTP status {} {}"
                          .format(method, url, r.status_code, r.reason))
    else:
        raise DownloadError("Failed to {} {}: HTTP status {} {}"
                            .format(method, url, r.status_code, r.reason))


def close_response(r):
    r.close()


def response_reader(r, cancel=None):
    """Return a binary file-like object for the body of a streaming response, which closes the
    response when it is closed. With a ``cancel`` event, the body is read in a producer thread,
    so the consumer is not left waiting on a stalled server after the event is set."""
    from omniurl.stream import reader, threaded_reader

    # Requests will auto decode gzip responses, but not when streaming. This following
    # monkey patch is recommended by a core developer at
    # https://github.com/kennethreitz/requests/issues/2155
    if r.headers.get('content-encoding') == 'gzip':
        r.raw.read = functools.partial(r.raw.read, decode_content=True)

    if cancel is not None:
        return threaded_reader(r.raw, cancel, closers=[r.close], name='read {}'.format(r.url))

    return reader(r.raw, closers=[r.close])


def download(url, cache, cache_path, cancel=None):
    """
    Copy the whole content of a URL to a file in the cache.

    :param url: A Url object
    :param cache: PyFilesystem filesystem
    :param cache_path: Path of the new file in the cache
    :param cancel: A :py:class:`threading.Event`
    :return: the system path of the new file
    """

    from omniurl.util import copy_file_or_flo

    logger.debug("Download '{}' to '{}'".format(url, cache_path))

    try:
        with url.open(cancel=cancel) as src, cache.open(cache_path, 'wb') as f:
            size = copy_file_or_flo(src, f, cancel=cancel)

    except (KeyboardInterrupt, Exception):
        # Partly downloaded files must not be confused with fully downloaded ones.
        if cache.exists(cache_path):
            cache.remove(cache_path)

        raise

    logger.info("Downloaded '{}', {} bytes".format(url, size))

    return cache.getsyspath(cache_path)
