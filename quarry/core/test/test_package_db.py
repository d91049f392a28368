import os
from os.path import join as pjoin

import pytest

from ..package_db import PackageDatabase
from ..packager import Packager
from ..recipe import Recipe
from ..common import PackagingError
from .utils import temp_dir, dump, cat, logger, make_config
from ...util.logger_fixtures import log_capture


def make_bundle(d, name, version, contents='', metadata=None):
    tree = pjoin(d, 'trees', name, version)
    dump(pjoin(tree, '%s.el' % name), contents)
    if metadata is not None:
        dump(pjoin(tree, 'package.yaml'), metadata)
    recipe = Recipe({'name': name, 'fetcher': 'file', 'path': tree})
    return Packager(pjoin(d, 'packages'), logger).package(recipe, tree, version)


def test_install_and_describe():
    with temp_dir() as d:
        db = PackageDatabase(pjoin(d, 'db'), logger)
        assert db.installed() == []
        assert db.describe('makey') is None
        assert not db.is_installed('makey')

        bundle = make_bundle(d, 'makey', '0.3', ';; makey\n', 'dependencies: [dash]\n')
        descriptor = db.install(bundle)
        assert descriptor.name == 'makey'
        assert descriptor.version == '0.3'
        assert descriptor.path == pjoin(d, 'db', 'makey')
        assert descriptor.dependencies == {'dash': None}
        assert cat(pjoin(d, 'db', 'makey', 'makey.el')) == ';; makey\n'
        assert db.describe('makey') == descriptor
        assert db.installed_version('makey') == '0.3'
        assert db.installed() == ['makey']
        # the bundle is copied, not moved
        assert os.path.isdir(bundle)


def test_install_replaces():
    with temp_dir() as d:
        db = PackageDatabase(pjoin(d, 'db'), logger)
        db.install(make_bundle(d, 'makey', '0.3', 'old'))
        db.install(make_bundle(d, 'makey', '0.2', 'older'))
        assert db.installed_version('makey') == '0.2'
        assert cat(pjoin(d, 'db', 'makey', 'makey.el')) == 'older'


def test_is_installed():
    with temp_dir() as d:
        db = PackageDatabase(pjoin(d, 'db'), logger)
        db.install(make_bundle(d, 'dash', '2.5'))
        assert db.is_installed('dash')
        assert db.is_installed('dash', '2.0')
        assert db.is_installed('dash', '2.5.0')
        assert not db.is_installed('dash', '2.6')
        assert not db.is_installed('s', None)


def test_is_installed_incomparable():
    with temp_dir() as d:
        with log_capture() as log:
            db = PackageDatabase(pjoin(d, 'db'), log)
            db.install(make_bundle(d, 'dash', '2.5'))
            assert not db.is_installed('dash', 'latest')
        log.assertLogged('WARNING:Cannot check dash 2.5 against required latest')


def test_delete():
    with temp_dir() as d:
        db = PackageDatabase(pjoin(d, 'db'), logger)
        db.install(make_bundle(d, 'makey', '0.3'))
        assert db.delete('makey')
        assert not db.delete('makey')
        assert db.installed() == []
        assert db.installed_version('makey') is None


def test_ignores_stray_directories():
    with temp_dir() as d:
        db = PackageDatabase(pjoin(d, 'db'), logger)
        dump(pjoin(d, 'db', 'junk', 'README'), '')
        assert db.installed() == []
        assert db.describe('junk') is None


def test_invalid_name():
    with temp_dir() as d:
        db = PackageDatabase(pjoin(d, 'db'), logger)
        with pytest.raises(ValueError):
            db.describe('../etc')


def test_install_invalid_bundle():
    with temp_dir() as d:
        db = PackageDatabase(pjoin(d, 'db'), logger)
        with pytest.raises(PackagingError):
            db.install(pjoin(d, 'nonexisting'))


def test_create_from_config():
    with temp_dir() as d:
        db = PackageDatabase.create_from_config(make_config(d), logger)
        assert db.get_package_dir('makey') == pjoin(d, 'db', 'makey')
