# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""Docker URLs address the first layer of a container image in a registry, like
'docker://registry.example.com/tools/data:1.0'. The scheme may be omitted.

Opening the URL pulls the image from the registry and writes it as a tarball, in the format of
``docker save``, from which the first gzipped layer is decoded. Both steps run in producer
threads, so the caller reads the layer as a stream::

    registry -> image tarball -> pipe -> first layer decoder -> pipe -> caller
"""

import json
import logging
import posixpath
import tarfile
import time
from io import BytesIO
from urllib.parse import parse_qs, urlparse

from omniurl.url import Url, UrlKind
from omniurl.util import get_format

logger = logging.getLogger('omniurl.docker')

DEFAULT_TAG = 'latest'


def split_image_reference(path):
    """Split the path part of a docker URL, '/REPOSITORY:TAG' or '/REPOSITORY@DIGEST', into the
    repository name and the tag or digest. The tag defaults to 'latest'"""

    ref = path.lstrip('/')

    if '@' in ref:
        repository, _, reference = ref.partition('@')
        return repository, reference

    head, sep, last = ref.rpartition('/')

    if ':' in last:
        name, _, tag = last.partition(':')
        return head + sep + name, tag

    return ref, DEFAULT_TAG


class DockerUrl(Url):

    kind = UrlKind.DOCKER

    def __init__(self, u_str, context=None):
        from omniurl.exceptions import MalformedUrlError

        super().__init__(context)

        if not u_str.startswith('docker:'):
            u_str = 'docker://' + u_str.lstrip('/')

        p = urlparse(u_str)

        if p.netloc:
            host, path = p.netloc, p.path
        else:
            # 'docker:HOST/IMAGE:TAG'
            host, _, path = p.path.lstrip('/').partition('/')
            path = '/' + path

        if not host:
            raise MalformedUrlError("malformed docker URL: {}".format(u_str))

        self.host = host
        self.path = path or '/'
        self.query = p.query

    @classmethod
    def valid(cls, u_str, context=None, cancel=None):
        return cls(u_str, context=context).validate(cancel=cancel)

    def validate(self, cancel=None):
        """Return self if the registry has the image. Raises NotFound otherwise"""

        repository, reference = self.image_reference

        self.registry_client().has_manifest(repository, reference, cancel=cancel)

        return self

    def valid_relative(self, path, cancel=None):
        return self.relative(path).validate(cancel=cancel)

    @property
    def image_reference(self):
        """(repository, tag or digest)"""
        return split_image_reference(self.path)

    @property
    def key(self):
        key = 'docker://{}{}'.format(self.host, self.path)

        if self.query:
            key += '?' + self.query

        return key

    @property
    def format(self):
        format = parse_qs(self.query).get('format')

        if format:
            return format[0]

        return get_format(self.image_reference[0])

    def base(self):
        path = posixpath.dirname(self.path)
        if path != '/':
            path += '/'

        return DockerUrl('docker://{}{}'.format(self.host, path), context=self.context)

    def relative(self, path):
        if not path.startswith('/'):
            path = posixpath.normpath(posixpath.join(posixpath.dirname(self.path), path))

        return DockerUrl('docker://{}{}'.format(self.host, path), context=self.context)

    def registry_client(self):
        from omniurl.docker.registry import RegistryClient

        return RegistryClient(self.context, self.host)

    def open(self, cancel=None):
        from omniurl.stream import Pipe, start_producer

        pipe = Pipe(cancel=cancel)

        start_producer(lambda writer: self.write_first_layer(writer, cancel=cancel), pipe,
                       name='docker-first-layer')

        return pipe.reader

    def write_first_layer(self, writer, cancel=None):
        """Write the decompressed content of the first layer of the image to ``writer``"""
        from omniurl.archive.nested import FirstTarballInTarballDecoder
        from omniurl.stream import Pipe, start_producer
        from omniurl.util import copy_file_or_flo

        pipe = Pipe(cancel=cancel)

        start_producer(lambda w: self.write_tarball(w, cancel=cancel), pipe,
                       name='docker-tarball')

        decoder = FirstTarballInTarballDecoder(pipe.reader, cancel=cancel)

        try:
            with decoder.decode() as layer:
                copy_file_or_flo(layer, writer, cancel=cancel)
        finally:
            # The rest of the image tarball isn't needed
            pipe.reader.close()
            decoder.drain()

    def write_tarball(self, writer, cancel=None):
        """Pull the image, and write it to ``writer`` as a tarball with the config, then the
        layers as '<digest hex>.tar.gz' entries, then 'manifest.json'"""

        repository, reference = self.image_reference
        client = self.registry_client()

        manifest = client.get_manifest(repository, reference, cancel=cancel)

        logger.info("Pulling image {}/{}:{}".format(self.host, repository, reference))

        now = time.time()

        def add(name, size, f):
            info = tarfile.TarInfo(name)
            info.size = size
            info.mtime = now
            tar.addfile(info, f)

        with tarfile.open(fileobj=writer, mode='w|') as tar:

            config_digest = manifest['config']['digest']

            with client.open_blob(repository, config_digest, cancel=cancel) as f:
                config = f.read()

            add(config_digest, len(config), BytesIO(config))

            layer_names = []

            for layer in manifest.get('layers', []):
                name = '{}.tar.gz'.format(layer['digest'].partition(':')[2])

                with client.open_blob(repository, layer['digest'], cancel=cancel) as f:
                    add(name, layer['size'], f)

                layer_names.append(name)

            tarball_manifest = json.dumps([{
                'Config': config_digest,
                'RepoTags': ['{}/{}:{}'.format(self.host, repository, reference)],
                'Layers': layer_names,
            }]).encode('utf-8')

            add('manifest.json', len(tarball_manifest), BytesIO(tarball_manifest))
