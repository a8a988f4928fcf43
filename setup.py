__AUTHOR__ = 'VGX Consulting'
__VERSION__ = '7.0.0'
__EMAIL__ = 'backupdb@vgx.digital'
__LICENSE__ = 'MIT'

import re
from pathlib import Path

from setuptools import find_namespace_packages, setup

with open(Path(__file__).parent / 'README.md') as f:
    lines = f.readlines()
    filtered = [
        x for x in lines
        if not re.match(r'^[\[!]{2}', x) and len(x) > 0
    ]
    readme = ''.join(filtered)

with open(Path(__file__).parent / 'requirements.txt') as f:
    requirements = f.read()

setup(
    name='backupdb',
    python_requires=">=3.10",
    version=__VERSION__,
    url='https://github.com/VGXConsulting/BackupDB',
    license=__LICENSE__,
    author=__AUTHOR__,
    author_email=__EMAIL__,
    maintainer=__AUTHOR__,
    maintainer_email=__EMAIL__,
    description='Incremental MySQL backups to Git, S3 or OneDrive.',
    long_description=readme.split('## Installation')[0].split('# backupdb')[-1].strip(),
    long_description_content_type='text/markdown',
    package_dir={'': 'src'},
    packages=find_namespace_packages(where='src'),
    entry_points={
        'console_scripts': ['backupdb=backupdb.run:main'],
    },
    install_requires=requirements,
    extras_require={
        'test': ['pytest'],
    },
    classifiers=[
        'Development Status :: 5 - Production/Stable',
        'Intended Audience :: System Administrators',
        'Topic :: System :: Archiving :: Backup',
        'Topic :: Database',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
    ],
)
