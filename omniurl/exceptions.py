# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""Exceptions raised by omniurl"""


class OmniUrlError(Exception):
    pass


class MalformedUrlError(OmniUrlError, ValueError):
    """The URL string could not be parsed, or does not follow the grammar for its scheme"""
    pass


class InvalidUrlError(OmniUrlError):
    """A URL string could not be resolved against any of the origins it was given.

    The failure for each origin that was tried is kept in ``errors``, as a list of
    ``(origin, exception)`` tuples.
    """

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])


class NotFound(OmniUrlError):
    """The addressed entry, path or reference does not exist in its container"""
    pass


class NotImplementedUrlError(OmniUrlError):
    """Support for a kind of URL is not available in this installation"""
    pass


class ArchiveError(OmniUrlError):
    """An archive could not be decoded, or has a format that isn't supported"""
    pass


class DownloadError(OmniUrlError):
    pass


class AccessError(DownloadError):
    """Got an access error on download"""
    pass


class Cancelled(OmniUrlError):
    """An open, download or clone was cancelled by the caller"""
    pass


class ConfigurationError(OmniUrlError):
    """The environment or the arguments to the Context are not usable, for instance a cache
    directory that can't be created"""
    pass
