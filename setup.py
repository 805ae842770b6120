"""
Setup script for tfinstall
"""

from setuptools import setup, find_packages
import os

# Read the README file
here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='tfinstall',
    version='0.1.0',
    description='Download Terraform release binaries with signature and checksum verification',
    long_description=long_description,
    long_description_content_type='text/markdown',
    license='MPL-2.0',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Intended Audience :: System Administrators',
        'Topic :: System :: Installation/Setup',
        'Topic :: Security :: Cryptography',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Operating System :: POSIX',
        'Operating System :: POSIX :: Linux',
        'Operating System :: MacOS :: MacOS X',
    ],
    keywords='terraform install download gpg checksum verification',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    package_data={'tfinstall': ['hashicorp.asc']},
    python_requires='>=3.8',
    install_requires=[
        'requests>=2.28',
        'python-gnupg>=0.5',
    ],
    extras_require={
        'dev': [
            'pytest>=7.0',
            'pytest-cov>=4.0',
            'black>=22.0',
            'flake8>=5.0',
            'mypy>=1.0',
            'isort>=5.0',
        ],
    },
)
