"""
Setup script for NetView.

Usage:
    pip install -e .[test]

Installs the scan/monitor core packages and the ``netview`` console command.
"""
from setuptools import setup

setup(
    name='netview',
    version='1.0.0',
    description='Scan/monitor orchestration core for the NetView network scanner',
    python_requires='>=3.9',
    packages=[
        # Our packages
        'app',
        'config',
        'discovery',
        'storage',
    ],
    py_modules=['netview'],
    install_requires=[
        'psutil',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'netview=netview:main',
        ],
    },
)
