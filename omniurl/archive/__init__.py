# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""
Archive Urls represent an entry in a tar or zip archive. The archive is itself a Url, of any
kind, so archives may be read from the web, or from inside other archives. Tarballs are read
as streams; zip files are first copied to a local file with
:py:meth:`omniurl.context.Context.get_local_path`."""


from .tar import TarballUrl
from .zip import ZipUrl

__all__ = ["TarballUrl", "ZipUrl"]
