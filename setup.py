#!/usr/bin/env python

VERSION = '0.1.0'
DESCRIPTION = (
    'Twisted client-side proxies for Telepathy connection managers.'
)

from setuptools import setup


setup(
    name='txtelepathy',
    version=VERSION,
    description=DESCRIPTION,
    license='MIT',
    long_description=open('README.rst').read(),
    install_requires=['twisted>=16.0', 'txdbus>=1.1.0', 'zope.interface'],
    provides=['txtelepathy'],
    packages=['txtelepathy'],
    keywords=['telepathy', 'dbus', 'twisted'],
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Framework :: Twisted',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Operating System :: POSIX',
        'Programming Language :: Python :: 3',
        'Topic :: Communications :: Chat',
        'Topic :: Software Development :: Libraries',
    ],
)
