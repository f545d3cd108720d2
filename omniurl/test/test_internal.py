import io
import unittest

from omniurl.context import Context
from omniurl.exceptions import NotFound, OmniUrlError
from omniurl.internal import (InternalRegistry, InternalUrl, read_to_internal_url,
                              read_to_internal_urls_from_fs)
from omniurl.mock import MockUrl
from omniurl.url import parse_app_url, parse_valid_url


class Provider(object):
    """Content provider that counts how many times it is opened"""

    def __init__(self, data):
        self.data = data
        self.opened = []

    def open_path(self, path, cancel=None):
        self.opened.append(path)
        return io.BytesIO(self.data)


class InternalTests(unittest.TestCase):

    def setUp(self):
        self.registry = InternalRegistry()
        self.context = Context(registry=self.registry)

    def tearDown(self):
        self.context.close()

    def test_register(self):

        self.registry.register('conf/a.yaml', b'a: 1\n')
        self.registry.register('conf/b.txt', 'bee')
        self.registry.register('conf/n.txt', 42)
        self.registry.register('conf/empty', None)

        def read(path):
            return parse_valid_url('internal:' + path, context=self.context).read()

        self.assertEqual(b'a: 1\n', read('conf/a.yaml'))
        self.assertEqual(b'bee', read('conf/b.txt'))
        self.assertEqual(b'42', read('conf/n.txt'))
        self.assertEqual(b'', read('conf/empty'))

        self.assertEqual('yaml', parse_app_url('internal:conf/a.yaml', context=self.context).format)

    def test_conflict_and_update(self):

        self.registry.register('a.txt', 'one')

        with self.assertRaises(OmniUrlError):
            self.registry.register('a.txt', 'two')

        self.registry.update('a.txt', 'three')
        self.assertEqual(b'three', parse_app_url('internal:a.txt', context=self.context).read())

        self.registry.deregister('a.txt')
        self.assertNotIn('a.txt', self.registry)

        with self.assertRaises(NotFound):
            parse_valid_url('internal:a.txt', context=self.context)

        with self.assertRaises(NotFound):
            parse_app_url('internal:a.txt', context=self.context).read()

    def test_registries_are_separate(self):

        self.registry.register('only-here.txt', 'x')

        other = Context(registry=InternalRegistry())

        try:
            with self.assertRaises(NotFound):
                parse_valid_url('internal:only-here.txt', context=other)
        finally:
            other.close()

    def test_provider(self):

        p = Provider(b'provided')
        self.registry.register('p/data.bin', p)

        u = parse_valid_url('internal:p/data.bin', context=self.context)

        self.assertEqual(b'provided', u.read())
        self.assertEqual(b'provided', u.read())
        self.assertEqual(['p/data.bin', 'p/data.bin'], p.opened)

    def test_relative(self):

        self.registry.register('conf/a.yaml', 'a')
        self.registry.register('conf/b.yaml', 'b')

        u = parse_valid_url('internal:conf/a.yaml', context=self.context)

        self.assertEqual(b'b', u.base().valid_relative('b.yaml').read())

        with self.assertRaises(NotFound):
            u.base().valid_relative('c.yaml')

    def test_set_content(self):

        u = InternalUrl('not/registered.txt', context=self.context)
        u.set_content('direct')

        self.assertEqual(b'direct', u.read())
        self.assertNotIn('not/registered.txt', self.registry)

    def test_read_to_internal_url(self):

        u = read_to_internal_url(self.context, 'from/stream.csv', io.BytesIO(b'a,b\n'))

        self.assertEqual('internal:from/stream.csv', u.key)
        self.assertEqual('csv', u.format)
        self.assertEqual(b'a,b\n', u.read())

    def test_read_from_fs(self):
        from fs.memoryfs import MemoryFS

        with MemoryFS() as mem:
            mem.makedirs('conf/sub')
            mem.writebytes('conf/a.yaml', b'a')
            mem.writebytes('conf/sub/b.yaml', b'b')
            mem.writebytes('skip.txt', b's')

            def process(path):
                if path.endswith('.yaml'):
                    return 'fs' + path

            read_to_internal_urls_from_fs(self.registry, mem, process=process)

        def read(path):
            return parse_valid_url('internal:' + path, context=self.context).read()

        self.assertEqual(b'a', read('fs/conf/a.yaml'))
        self.assertEqual(b'b', read('fs/conf/sub/b.yaml'))
        self.assertNotIn('fsskip.txt', self.registry)

    def test_mock(self):

        u = MockUrl('test', '/data/a.csv', 'a,b\n', context=self.context)

        self.assertEqual('test:/data/a.csv', u.key)
        self.assertEqual('csv', u.format)
        self.assertEqual(b'a,b\n', u.read())
        self.assertEqual('test:/data/b.csv', u.base().relative('b.csv').key)


if __name__ == '__main__':
    unittest.main()
