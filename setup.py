import os
from setuptools import setup

short_desc = "Fetch, build and install packages from version control and URLs"

try:
    fname = 'README.rst'
    with open(os.path.join(os.path.dirname(__file__), fname)) as f:
        long_desc = f.read()
except IOError:
    long_desc = short_desc

setup(
    name="quarry",
    version="0.1",
    author="quarry developers",
    description=(short_desc),
    license="BSD",
    keywords="package management vcs build cache",
    packages=[
        'quarry',
        'quarry.cli',
        'quarry.cli.test',
        'quarry.core',
        'quarry.core.test',
        'quarry.formats',
        'quarry.formats.tests',
        'quarry.util',
    ],
    package_data={
        "quarry.formats": ["config.example.yaml"],
        "quarry.util": ["logging_config.yaml"],
    },
    install_requires=[
        'PyYAML',
        'jsonschema',
        'distlib',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': ['quarry = quarry.cli.main:main'],
    },
    python_requires='>=3.6',
    long_description=long_desc,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Utilities",
        "License :: OSI Approved :: BSD License",
        "Programming Language :: Python :: 3",
    ],
)
