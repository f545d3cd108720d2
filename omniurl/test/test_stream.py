import io
import tarfile
import threading
import time
import unittest

from omniurl.archive.nested import FirstTarballInTarballDecoder, open_first_tarball_in_tarball
from omniurl.exceptions import Cancelled, NotFound
from omniurl.stream import Pipe, call_cancellable, reader, start_producer
from omniurl.test.support import tarball_bytes


class StreamTests(unittest.TestCase):

    def test_pipe(self):

        pipe = Pipe()

        def produce(writer):
            for i in range(100):
                writer.write('line {}\n'.format(i).encode('ascii'))

        t = start_producer(produce, pipe)

        with io.BufferedReader(pipe.reader) as r:
            lines = r.read().decode('ascii').splitlines()

        t.join()

        self.assertEqual(100, len(lines))
        self.assertEqual('line 99', lines[-1])

    def test_pipe_error(self):

        pipe = Pipe()

        def produce(writer):
            writer.write(b'partial')
            raise ValueError('producer failed')

        start_producer(produce, pipe)

        r = pipe.reader

        self.assertEqual(b'partial', r.read(100))

        with self.assertRaises(ValueError):
            r.read(100)

        r.close()

    def test_closed_reader_stops_producer(self):

        pipe = Pipe()
        errors = []

        def produce(writer):
            try:
                while True:
                    writer.write(b'x' * 1000)
            except BrokenPipeError as e:
                errors.append(e)
                raise

        t = start_producer(produce, pipe)

        pipe.reader.read(10)
        pipe.reader.close()

        t.join(5)

        self.assertFalse(t.is_alive())
        self.assertEqual(1, len(errors))

    def test_cancel(self):

        cancel = threading.Event()
        pipe = Pipe(cancel=cancel)

        def produce(writer):
            # Never writes
            while not cancel.is_set():
                time.sleep(0.01)

        start_producer(produce, pipe)

        threading.Timer(0.1, cancel.set).start()

        with self.assertRaises(Cancelled):
            pipe.reader.read(10)

    def test_cancel_reader(self):

        cancel = threading.Event()

        r = reader(io.BytesIO(b'x' * 100000), cancel=cancel)

        self.assertEqual(b'x' * 10, r.read(10))

        cancel.set()

        with self.assertRaises(Cancelled):
            r.read()

    def test_call_cancellable(self):

        self.assertEqual(3, call_cancellable(lambda: 1 + 2, threading.Event()))

        with self.assertRaises(ValueError):
            call_cancellable(lambda: int('x'), threading.Event())

        release = threading.Event()
        abandoned = []

        def blocked():
            release.wait(5)
            return 'late'

        cancel = threading.Event()
        threading.Timer(0.1, cancel.set).start()

        start = time.time()

        with self.assertRaises(Cancelled):
            call_cancellable(blocked, cancel, on_abandon=abandoned.append)

        self.assertLess(time.time() - start, 1.5)

        release.set()

        for _ in range(100):
            if abandoned:
                break
            time.sleep(0.01)

        self.assertEqual(['late'], abandoned)

    def test_first_tarball_in_tarball(self):

        layer = tarball_bytes({'hello.txt': b'hello'})
        image = tarball_bytes({
            'config.json': b'{}',
            'abc.tar.gz': tarball_bytes({'hello.txt': b'hello'}, 'gz'),
            'def.tar.gz': tarball_bytes({'other.txt': b'other'}, 'gz'),
        })

        with open_first_tarball_in_tarball(io.BytesIO(image)) as f:
            data = f.read()

        self.assertEqual(layer, data)

        with tarfile.open(fileobj=io.BytesIO(data)) as tar:
            self.assertEqual(b'hello', tar.extractfile('hello.txt').read())

        with self.assertRaises(NotFound):
            open_first_tarball_in_tarball(io.BytesIO(tarball_bytes({'config.json': b'{}'})))

    def test_decoder(self):

        image = tarball_bytes({
            'config.json': b'{}',
            'abc.tar.gz': tarball_bytes({'hello.txt': b'hello'}, 'gz'),
        })

        decoder = FirstTarballInTarballDecoder(io.BytesIO(image))

        with decoder.decode() as r:
            data = r.read()

        decoder.drain()

        with tarfile.open(fileobj=io.BytesIO(data)) as tar:
            self.assertEqual(b'hello', tar.extractfile('hello.txt').read())

    def test_decoder_not_found(self):

        decoder = FirstTarballInTarballDecoder(io.BytesIO(tarball_bytes({'a.txt': b'a'})))

        with decoder.decode() as r:
            with self.assertRaises(NotFound):
                r.read()

        decoder.drain()


if __name__ == '__main__':
    unittest.main()
