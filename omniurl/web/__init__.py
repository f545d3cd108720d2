# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""
WebUrls represent resources that are accessible with HTTP or HTTPS. Requests use the
session, transport adapter and credentials that the Context has for the host.
"""

from .download import download, http_request
from .web import WebUrl
