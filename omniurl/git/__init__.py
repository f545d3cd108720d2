# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""
Git URLs represent a file in a git repository, which is cloned into a directory owned by
the Context.
"""

from .git import GitUrl
