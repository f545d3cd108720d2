# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""A small client for the container registry HTTP API, version 2, with just what is needed to
pull an image: manifests, blobs and bearer token authentication.

Requests go through the requests Session that the Context has for the registry host, so the
HTTP adapter and credentials set for the host in the Context are used.
"""

import json
import logging
import re
from urllib.parse import urlparse

logger = logging.getLogger('omniurl.docker.registry')

MANIFEST_MEDIA_TYPES = (
    'application/vnd.oci.image.manifest.v1+json',
    'application/vnd.docker.distribution.manifest.v2+json',
)

INDEX_MEDIA_TYPES = (
    'application/vnd.oci.image.index.v1+json',
    'application/vnd.docker.distribution.manifest.list.v2+json',
)

DOCKER_HUB_HOSTS = ('docker.io', 'index.docker.io')
DOCKER_HUB_API_HOST = 'registry-1.docker.io'

DEFAULT_PLATFORM = ('linux', 'amd64')

challenge_param_re = re.compile(r'(\w+)="([^"]*)"')


def is_insecure_host(host):
    """Local registries are reached with plain HTTP"""

    hostname = urlparse('//' + host).hostname or ''

    return hostname in ('localhost', '127.0.0.1') or hostname.endswith('.local')


def parse_challenge(header):
    """Parse a 'WWW-Authenticate: Bearer realm="...",service="...",scope="..."' header into
    a dict, or return None if it is not a bearer challenge"""

    scheme, _, params = header.strip().partition(' ')

    if scheme.lower() != 'bearer':
        return None

    return dict(challenge_param_re.findall(params))


class RegistryClient(object):

    def __init__(self, context, host):
        self.context = context
        self.host = host

        self.api_host = DOCKER_HUB_API_HOST if host in DOCKER_HUB_HOSTS else host
        self.scheme = 'http' if is_insecure_host(host) else 'https'

        self._token = None

    def repository_name(self, repository):
        """Official images on Docker Hub are in the 'library' namespace"""

        if self.host in DOCKER_HUB_HOSTS and '/' not in repository:
            return 'library/' + repository

        return repository

    def url(self, repository, kind, reference):
        return '{}://{}/v2/{}/{}/{}'.format(self.scheme, self.api_host,
                                           self.repository_name(repository), kind, reference)

    def _auth(self):
        if self._token is not None:
            return None, {'Authorization': 'Bearer {}'.format(self._token)}

        return self.context.http_auth(self.host)

    def _send(self, method, url, headers, stream, cancel=None):
        from requests import RequestException

        from omniurl.exceptions import DownloadError
        from omniurl.stream import call_cancellable
        from omniurl.web.download import close_response

        auth, auth_headers = self._auth()

        all_headers = dict(auth_headers)
        all_headers.update(headers or {})

        logger.debug("Request {} {}".format(method, url))

        def send():
            return self.context.session(self.api_host).request(
                method, url, headers=all_headers, auth=auth, stream=stream,
                timeout=self.context.timeout)

        try:
            return call_cancellable(send, cancel, on_abandon=close_response,
                                    name='{} {}'.format(method, url))
        except RequestException as e:
            raise DownloadError("Failed to {} {}: {}".format(method, url, e)) from e

    def request(self, method, url, cancel=None, headers=None, stream=True):
        """Make a request to the registry, authenticating with a bearer token if the registry
        asks for one, and check the status.

        :return: A requests Response with status 200
        """

        from omniurl.exceptions import AccessError, Cancelled, DownloadError, NotFound

        if cancel is not None and cancel.is_set():
            raise Cancelled("Request cancelled: {} {}".format(method, url))

        r = self._send(method, url, headers, stream, cancel=cancel)

        if r.status_code == 401 and self._token is None:
            challenge = parse_challenge(r.headers.get('WWW-Authenticate', ''))
            r.close()

            if challenge is not None:
                self._token = self.fetch_token(challenge, cancel=cancel)
                r = self._send(method, url, headers, stream, cancel=cancel)

        if r.status_code == 200:
            return r

        r.close()

        if r.status_code in (401, 403):
            raise AccessError("Access error on {} {}: HTTP status {} {}"
                              .format(method, url, r.status_code, r.reason))
        elif r.status_code == 404:
            raise NotFound("Not found in registry: {}".format(url))
        else:
            raise DownloadError("Failed to {} {}: HTTP status {} {}"
                                .format(method, url, r.status_code, r.reason))

    def fetch_token(self, challenge, cancel=None):
        """Get a bearer token from the realm of a challenge, using the basic credentials
        for the registry host, if there are any"""

        from requests import RequestException
        from requests.auth import HTTPBasicAuth

        from omniurl.context import host_of
        from omniurl.exceptions import AccessError
        from omniurl.stream import call_cancellable
        from omniurl.web.download import close_response

        realm = challenge.get('realm')

        if not realm:
            raise AccessError("Registry {} asked for a token, but gave no realm".format(self.host))

        params = {k: v for k, v in challenge.items() if k in ('service', 'scope')}

        credentials = self.context.get_credentials(self.host)

        auth = None
        if credentials is not None and credentials.username:
            auth = HTTPBasicAuth(credentials.username, credentials.password or '')

        logger.debug("Get registry token from {}".format(realm))

        def send():
            return self.context.session(host_of(realm)).get(realm, params=params, auth=auth,
                                                            timeout=self.context.timeout)

        try:
            r = call_cancellable(send, cancel, on_abandon=close_response,
                                 name='token request to {}'.format(realm))
        except RequestException as e:
            raise AccessError("Failed to get registry token from {}: {}".format(realm, e)) from e

        with r:
            if r.status_code != 200:
                raise AccessError("Failed to get registry token from {}: HTTP status {} {}"
                                  .format(realm, r.status_code, r.reason))

            d = r.json()

        token = d.get('token') or d.get('access_token')

        if not token:
            raise AccessError("No token in response from {}".format(realm))

        return token

    def has_manifest(self, repository, reference, cancel=None):
        """Check that the manifest exists, raising NotFound if it does not"""

        r = self.request('HEAD', self.url(repository, 'manifests', reference), cancel=cancel,
                         headers={'Accept': ', '.join(MANIFEST_MEDIA_TYPES + INDEX_MEDIA_TYPES)})
        r.close()

        return True

    def get_manifest(self, repository, reference, cancel=None, platform=DEFAULT_PLATFORM):
        """Return the image manifest, as a dict. If the reference is to an index of manifests
        for several platforms, the manifest for ``platform`` is returned, or the first one if
        there is none for that platform."""
        from omniurl.exceptions import DownloadError, NotFound

        r = self.request('GET', self.url(repository, 'manifests', reference), cancel=cancel,
                         headers={'Accept': ', '.join(MANIFEST_MEDIA_TYPES + INDEX_MEDIA_TYPES)},
                         stream=False)

        with r:
            try:
                manifest = json.loads(r.content.decode('utf-8'))
            except ValueError as e:
                raise DownloadError("Bad manifest for {}:{}: {}".format(repository, reference, e))

        media_type = manifest.get('mediaType') or r.headers.get('Content-Type', '')

        if media_type in INDEX_MEDIA_TYPES or 'manifests' in manifest:
            manifests = manifest.get('manifests') or []

            if not manifests:
                raise NotFound("No manifests in index for {}:{}".format(repository, reference))

            chosen = manifests[0]
            for m in manifests:
                p = m.get('platform', {})
                if (p.get('os'), p.get('architecture')) == platform:
                    chosen = m
                    break

            return self.get_manifest(repository, chosen['digest'], cancel=cancel, platform=platform)

        return manifest

    def open_blob(self, repository, digest, cancel=None):
        """Open a blob, returning a binary file-like object"""
        from omniurl.web.download import response_reader

        r = self.request('GET', self.url(repository, 'blobs', digest), cancel=cancel)

        return response_reader(r, cancel=cancel)
