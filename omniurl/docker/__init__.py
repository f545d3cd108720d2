# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""
Docker URLs represent the first layer of a container image in a registry.
"""

from .docker import DockerUrl
from .registry import RegistryClient
