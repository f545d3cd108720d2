# -*- coding: utf-8 -*-

from .url import (Url, UrlKind, parse_app_url, parse_any_or_file_url, parse_valid_url,
                  parse_valid_any_or_file_url)
from .context import Context, Credentials
from .internal import (InternalRegistry, InternalUrl, default_registry, read_to_internal_url,
                       read_to_internal_url_from_stdin, read_to_internal_urls_from_fs)
from .file import FileUrl
from .web import WebUrl
from .archive import TarballUrl, ZipUrl
from .git import GitUrl
from .docker import DockerUrl
from .mock import MockUrl
from .util import get_cache, get_format
from .exceptions import (OmniUrlError, MalformedUrlError, InvalidUrlError, NotFound,
                         NotImplementedUrlError, ArchiveError, DownloadError, AccessError,
                         Cancelled)


from importlib.metadata import version, PackageNotFoundError
try:
    __version__ = version(__name__)
except PackageNotFoundError:
    # package is not installed
    pass
