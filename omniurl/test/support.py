import io
import shutil
import tarfile
import threading
import zipfile
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from os.path import join
from urllib.parse import urlparse


def tarball_bytes(entries, compression=''):
    """Return a tarball, as bytes, with the given entries, a dict of name to bytes"""

    b = io.BytesIO()

    mode = 'w:' + compression if compression else 'w'

    with tarfile.open(fileobj=b, mode=mode) as tar:
        for name, data in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))

    return b.getvalue()


def write_tarball(path, entries, compression=''):
    with open(path, 'wb') as f:
        f.write(tarball_bytes(entries, compression))

    return path


def zip_bytes(entries):
    b = io.BytesIO()

    with zipfile.ZipFile(b, 'w') as zf:
        for name, data in entries.items():
            zf.writestr(name, data)

    return b.getvalue()


def write_zip(path, entries):
    with open(path, 'wb') as f:
        f.write(zip_bytes(entries))

    return path


def write_file(d, name, data):
    path = join(d, name)

    with open(path, 'wb') as f:
        f.write(data)

    return path


def has_git():
    return shutil.which('git') is not None


class LocalServer(object):
    """A threaded HTTP server on localhost, which serves fixed routes.

    Each route maps a path to a (status, headers, body) tuple, or to a callable that takes the
    request handler and returns one, or returns None after writing the response itself. Every
    request is recorded in ``requests`` as (method, path, headers)"""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []

        server = self

        class Handler(BaseHTTPRequestHandler):

            def log_message(self, format, *args):
                return

            def _respond(self, send_body):
                server.requests.append((self.command, self.path, dict(self.headers)))

                route = server.routes.get(urlparse(self.path).path)

                if route is None:
                    status, headers, body = 404, {}, b'not found'
                elif callable(route):
                    response = route(self)

                    if response is None:
                        return

                    status, headers, body = response
                else:
                    status, headers, body = route

                self.send_response(status)
                for k, v in headers.items():
                    self.send_header(k, v)
                self.send_header('Content-Length', str(len(body)))
                self.end_headers()

                if send_body:
                    self.wfile.write(body)

            def do_GET(self):
                self._respond(True)

            def do_HEAD(self):
                self._respond(False)

        self.server = ThreadingHTTPServer(('127.0.0.1', 0), Handler)
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    @property
    def host(self):
        return '127.0.0.1:{}'.format(self.server.server_port)

    def url(self, path):
        return 'http://{}{}'.format(self.host, path)

    def __enter__(self):
        self.thread.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.server.shutdown()
        self.server.server_close()
