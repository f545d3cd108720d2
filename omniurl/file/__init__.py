# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""
File URLs represent resources that are acessible on the local file system.

Because these URLs are assumed to be local, :py:meth:`omniurl.context.Context.get_local_path`
just returns the path.

"""


from .file import FileUrl
