#!/usr/bin/env python
# -*- coding: utf-8 -*-

import os
import sys

from setuptools import find_packages, setup

if sys.argv[-1] == 'publish':
    os.system('python setup.py sdist upload')
    sys.exit()

with open(os.path.join(os.path.dirname(__file__), 'README.rst')) as f:
    readme = f.read()

classifiers = [
    'Development Status :: 4 - Beta',
    'Environment :: Web Environment',
    'Intended Audience :: Developers',
    'License :: OSI Approved :: MIT License',
    'Operating System :: OS Independent',
    'Programming Language :: Python',
    'Programming Language :: Python :: 3',
    'Topic :: Internet :: WWW/HTTP',
    'Topic :: Software Development :: Libraries :: Python Modules',
]


setup(
    name='omniurl',
    version="0.1.0",
    description='Open files, web resources, archive entries, git files and container image layers '
                'through one URL interface',
    long_description=readme,
    packages=find_packages(),
    install_requires=[
        'fs >= 2',
        'requests',
        'setuptools < 81',  # fs imports pkg_resources
        'tabulate',
    ],
    extras_require={
        'test': ['pytest']
    },
    python_requires='>=3.8',
    entry_points={
        'console_scripts': [
            'omniurl=omniurl.cli:omniurl',
        ],
    },


    author="Eric Busboom",
    author_email='eric@civicknowledge.com',
    url='https://github.com/Metatab/omniurl.git',
    license='MIT',
    classifiers=classifiers
)
