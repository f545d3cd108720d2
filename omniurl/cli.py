# Copyright (c) 2017 Civic Knowledge. This file is licensed under the terms of the
# MIT, included in this distribution as LICENSE

"""
CLI program for inspecting and reading URLs
"""

import logging
import sys


def path_cache():
    """The cache for --path, which must outlive the program: the OMNIURL_CACHE directory if it
    is set, or else a new temporary directory, which the caller should delete"""
    import os
    import tempfile

    from fs.osfs import OSFS

    from omniurl.util import get_cache

    if os.getenv('OMNIURL_CACHE'):
        return get_cache()

    return OSFS(tempfile.mkdtemp(prefix='omniurl-'))


def omniurl():
    from tabulate import tabulate

    from omniurl.context import Context
    from omniurl.exceptions import OmniUrlError
    from omniurl.url import SCHEMES, parse_any_or_file_url, parse_valid_any_or_file_url

    import argparse
    parser = argparse.ArgumentParser(
        prog='omniurl',
        description='Resolve, inspect and read URLs',
    )

    g = parser.add_mutually_exclusive_group(required=True)

    g.add_argument('-l', '--list', action='store_true',
                   help="List the supported URL schemes")

    g.add_argument('-i', '--info', help="Information about a URL")

    g.add_argument('-c', '--cat', help="Write the content of a URL to stdout")

    g.add_argument('-p', '--path',
                   help="Print the local path for a URL. May download resources. Downloads are "
                        "left in the OMNIURL_CACHE directory, or if that is not set, in a new "
                        "temporary directory")

    parser.add_argument('-o', '--origin', action='append', default=[],
                        help="Resolve relative URLs against this URL. May be repeated")

    parser.add_argument('-m', '--map', action='append', default=[], metavar='FROM=TO',
                        help="Map one URL to another. May be repeated")

    parser.add_argument('-d', '--debug', action='store_true', help="Log debugging messages")

    args = parser.parse_args(sys.argv[1:])

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)

    if args.list:
        print(tabulate([(s,) for s in SCHEMES], ['Scheme']))
        return

    # Files under --path are printed for the caller, so they are not released
    try:
        cache = path_cache() if args.path else None
    except OmniUrlError as e:
        print("ERROR: {}".format(e), file=sys.stderr)
        sys.exit(1)

    context = Context(cache=cache)

    try:
        for m in args.map:
            from_url, sep, to_url = m.partition('=')
            if not sep:
                parser.error("Mappings must have the form FROM=TO: '{}'".format(m))
            context.map(from_url, to_url)

        origins = [parse_any_or_file_url(o, context=context) for o in args.origin]

        if args.info:
            u = parse_any_or_file_url(args.info, context=context)

            t = [
                ('Class', u.__class__.__name__),
                ('Kind', u.kind.value),
                ('Key', u.key),
                ('Format', u.format),
                ('Base', str(u.base())),
            ]

            if origins:
                t.append(('Valid', str(parse_valid_any_or_file_url(args.info, origins,
                                                                    context=context))))

            print(tabulate(t))

        elif args.cat:
            from omniurl.util import copy_file_or_flo

            u = parse_valid_any_or_file_url(args.cat, origins, context=context)

            with u.open() as f:
                copy_file_or_flo(f, sys.stdout.buffer)

            sys.stdout.buffer.flush()

        elif args.path:
            u = parse_valid_any_or_file_url(args.path, origins, context=context)

            print(context.get_local_path(u))

    except OmniUrlError as e:
        print("ERROR: {}".format(e), file=sys.stderr)
        sys.exit(1)

    finally:
        if cache is not None:
            cache.close()
        else:
            context.close()


if __name__ == "__main__":
    # execute only if run as a script
    omniurl()
