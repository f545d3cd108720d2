# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""In-memory pipes and readers for streaming content between producer threads and the
caller of :py:meth:`omniurl.Url.open`.

A :py:class:`Pipe` is a single-slot handoff: a write blocks until the reader has consumed
all of it. The producer ends the stream with :py:meth:`PipeWriter.close`, or with
:py:meth:`PipeWriter.close_with_error`, in which case the reader raises that error instead of
seeing the end of the stream.
"""

import io
import logging
import threading

from omniurl.exceptions import Cancelled

logger = logging.getLogger('omniurl.stream')

# Seconds between checks of the cancel event while blocked
POLL_INTERVAL = 0.05


class Pipe(object):

    def __init__(self, cancel=None):
        self.cancel = cancel

        self._cond = threading.Condition()
        self._chunk = None
        self._offset = 0
        self._write_closed = False
        self._read_closed = False
        self._error = None

        self.reader = PipeReader(self)
        self.writer = PipeWriter(self)

    def _wait(self):
        """Wait for a change of state. Must be called with the condition held"""
        if self.cancel is not None and self.cancel.is_set():
            if self._error is None:
                self._error = Cancelled("Pipe cancelled")
            raise self._error

        self._cond.wait(POLL_INTERVAL)

    def _write(self, data):
        data = memoryview(data).cast('B')

        if not len(data):
            return 0

        with self._cond:
            if self._write_closed:
                raise ValueError("write to closed pipe")

            while self._chunk is not None and not self._read_closed:
                self._wait()

            if self._read_closed:
                raise BrokenPipeError("read side of pipe is closed")

            self._chunk = data
            self._offset = 0
            self._cond.notify_all()

            # Block until the reader has taken all of it
            while self._chunk is not None and not self._read_closed:
                self._wait()

            if self._chunk is not None:
                self._chunk = None
                raise BrokenPipeError("read side of pipe is closed")

        return len(data)

    def _readinto(self, b):
        with self._cond:
            while self._chunk is None and not self._write_closed and not self._read_closed:
                self._wait()

            if self._read_closed:
                raise ValueError("read from closed pipe")

            if self._chunk is not None:
                n = min(len(b), len(self._chunk) - self._offset)
                b[:n] = self._chunk[self._offset:self._offset + n]
                self._offset += n

                if self._offset >= len(self._chunk):
                    self._chunk = None
                    self._cond.notify_all()

                return n

            if self._error is not None:
                raise self._error

            return 0

    def _close_write(self, error=None):
        with self._cond:
            if not self._write_closed:
                self._write_closed = True
                self._error = error
            self._cond.notify_all()

    def _close_read(self):
        with self._cond:
            self._read_closed = True
            self._cond.notify_all()


class PipeReader(io.RawIOBase):
    """Read side of a :py:class:`Pipe`"""

    def __init__(self, pipe):
        super().__init__()
        self._pipe = pipe

    def readable(self):
        return True

    def readinto(self, b):
        return self._pipe._readinto(b)

    def close(self):
        if not self.closed:
            self._pipe._close_read()
        super().close()


class PipeWriter(io.RawIOBase):
    """Write side of a :py:class:`Pipe`"""

    def __init__(self, pipe):
        super().__init__()
        self._pipe = pipe

    def writable(self):
        return True

    def write(self, b):
        return self._pipe._write(b)

    def close_with_error(self, error):
        """Close the pipe so that the reader raises ``error`` rather than seeing the end of
        the stream"""
        self._pipe._close_write(error)
        super().close()

    def close(self):
        if not self.closed:
            self._pipe._close_write()
        super().close()


def start_producer(produce, pipe, name=None):
    """Run ``produce(writer)`` in a background thread, writing into ``pipe``.

    The writer is closed when ``produce`` returns. If it raises, the exception is attached to
    the pipe, and the reader will raise it.

    :param produce: Callable of one argument, the :py:class:`PipeWriter`
    :param pipe: A :py:class:`Pipe`
    :param name: Thread name
    :return: The started thread
    """

    def run():
        try:
            produce(pipe.writer)
        except Exception as e:
            logger.debug("producer {} failed: {}".format(name, e))
            pipe.writer.close_with_error(e)
        else:
            pipe.writer.close()

    t = threading.Thread(target=run, name=name, daemon=True)
    t.start()
    return t


def call_cancellable(func, cancel=None, on_abandon=None, name=None):
    """Return ``func()``, running it in a background thread so that the caller can stop
    waiting for it when ``cancel`` is set.

    If the call is abandoned, :py:class:`omniurl.exceptions.Cancelled` is raised, and the
    thread is left to finish. If it returns a value after that, ``on_abandon`` is called
    with it, so that resources like responses can be closed.
    """

    if cancel is None:
        return func()

    if cancel.is_set():
        raise Cancelled("{} cancelled".format(name or 'call'))

    done = threading.Event()
    lock = threading.Lock()
    state = {}

    def run():
        try:
            value = func()
        except Exception as e:
            with lock:
                state['error'] = e
        else:
            with lock:
                state['value'] = value
                abandoned = state.get('abandoned', False)

            if abandoned and on_abandon is not None:
                try:
                    on_abandon(value)
                except Exception as e:
                    logger.debug("cleanup of abandoned {} failed: {}".format(name, e))
        finally:
            done.set()

    threading.Thread(target=run, name=name, daemon=True).start()

    while not done.wait(POLL_INTERVAL):
        if cancel.is_set():
            with lock:
                if 'value' not in state and 'error' not in state:
                    state['abandoned'] = True
                    raise Cancelled("{} cancelled".format(name or 'call'))

    if 'error' in state:
        raise state['error']

    return state['value']


class ClosingReader(io.RawIOBase):
    """Wrap a readable object so that reads check a cancel event, and closing also closes a
    list of other resources, in order. Of several close errors, the first one is raised."""

    def __init__(self, raw, closers=None, cancel=None):
        super().__init__()
        self._raw = raw
        self._closers = list(closers) if closers is not None else [raw.close]
        self.cancel = cancel

    def readable(self):
        return True

    def readinto(self, b):
        if self.cancel is not None and self.cancel.is_set():
            raise Cancelled("Read cancelled")

        data = self._raw.read(len(b))
        n = len(data)
        b[:n] = data
        return n

    def close(self):
        if self.closed:
            return

        error = None
        try:
            for closer in self._closers:
                try:
                    closer()
                except Exception as e:
                    if error is None:
                        error = e
        finally:
            super().close()

        if error is not None:
            raise error


def reader(raw, cancel=None, closers=None):
    """Return ``raw`` as a buffered binary stream that honors the ``cancel`` event"""
    return io.BufferedReader(ClosingReader(raw, closers=closers, cancel=cancel))


def threaded_reader(raw, cancel, closers=None, name=None):
    """Like :py:func:`reader`, but the reads of ``raw`` are made by a producer thread, so a
    read that is blocked, for instance on a socket, does not stop the consumer from seeing
    the ``cancel`` event. The ``closers`` are called by the producer when it ends."""

    from omniurl.util import copy_file_or_flo

    closers = list(closers) if closers is not None else [raw.close]

    pipe = Pipe(cancel=cancel)

    def produce(writer):
        try:
            copy_file_or_flo(raw, writer, cancel=cancel)
        finally:
            for closer in closers:
                closer()

    start_producer(produce, pipe, name=name)

    return reader(pipe.reader, cancel=cancel)
