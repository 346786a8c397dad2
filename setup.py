import os
from setuptools import setup

NAME = 'vipmanager'


def getPackages(base):
    """
    Recursively find python packages.
    """
    packages = []

    for directory, _, files in os.walk(base):
        if '__init__.py' in files:
            packages.append(directory.replace(os.sep, '.'))

    return packages

packages = getPackages(NAME)


setup(
    name=NAME,
    version='0.0.0',
    description='Balances a pool of virtual addresses across a node group',
    packages=packages,
    license="Apache 2.0",
    install_requires=[
        'attrs',
        'constantly',
        'effect>=1.0',
        'pyrsistent',
        'toolz',
        'twisted',
        'txeffect>=1.0',
        'zope.interface',
    ],
    extras_require={
        'test': [
            'mock',
            'testtools',
        ],
    },
)
