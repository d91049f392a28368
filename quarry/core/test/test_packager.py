import os
import json
from os.path import join as pjoin

import pytest

from ..packager import Packager, PackageDescriptor, ARTIFACT_FILENAME, normalize_dependencies
from ..recipe import Recipe
from ..common import PackagingError
from .utils import temp_dir, dump, cat, logger, make_config


def make_recipe(**fields):
    doc = {'name': 'makey', 'fetcher': 'file', 'path': '/nonexisting'}
    doc.update(fields)
    return Recipe(doc)


def make_build_tree(d):
    tree = pjoin(d, 'build', 'makey')
    dump(pjoin(tree, 'makey.el'), ';; makey\n')
    dump(pjoin(tree, 'test', 'makey-test.el'), ';; tests\n')
    dump(pjoin(tree, '.travis.yml'), 'language: emacs-lisp\n')
    dump(pjoin(tree, 'package.yaml'), '''\
        description: Interactive commandline mode
        dependencies:
          dash: 2.0
          s: null
        ''')
    return tree


def test_normalize_dependencies():
    assert normalize_dependencies(None) == {}
    assert normalize_dependencies(['dash', 's']) == {'dash': None, 's': None}
    assert normalize_dependencies({'dash': 2, 's': None}) == {'dash': '2', 's': None}


def test_package():
    with temp_dir() as d:
        tree = make_build_tree(d)
        packager = Packager(pjoin(d, 'packages'), logger)
        bundle = packager.package(make_recipe(), tree, '20140406.1613')
        assert bundle == pjoin(d, 'packages', 'makey-20140406.1613')
        assert cat(pjoin(bundle, 'makey.el')) == ';; makey\n'
        assert os.path.exists(pjoin(bundle, 'test', 'makey-test.el'))
        assert not os.path.exists(pjoin(bundle, '.travis.yml'))
        with open(pjoin(bundle, ARTIFACT_FILENAME)) as f:
            doc = json.load(f)
        assert doc['files'] == ['makey.el', 'package.yaml', 'test/makey-test.el']

        descriptor = packager.describe(bundle)
        assert descriptor == PackageDescriptor('makey', '20140406.1613',
                                               {'dash': '2.0', 's': None}, bundle,
                                               'Interactive commandline mode')
        assert descriptor.to_json() == {'name': 'makey', 'version': '20140406.1613',
                                        'dependencies': {'dash': '2.0', 's': None},
                                        'description': 'Interactive commandline mode'}
        # no staging directories are left behind
        assert os.listdir(pjoin(d, 'packages')) == ['makey-20140406.1613']


def test_files_rule():
    with temp_dir() as d:
        tree = make_build_tree(d)
        packager = Packager(pjoin(d, 'packages'), logger)
        bundle = packager.package(make_recipe(files=['*.el']), tree, '0.1')
        assert sorted(os.listdir(bundle)) == [ARTIFACT_FILENAME, 'makey.el']
        # dependencies are read from the build tree, not the bundle
        assert packager.describe(bundle).dependencies == {'dash': '2.0', 's': None}


def test_repackage_replaces_bundle():
    with temp_dir() as d:
        tree = make_build_tree(d)
        packager = Packager(pjoin(d, 'packages'), logger)
        bundle = packager.package(make_recipe(), tree, '0.1')
        os.unlink(pjoin(tree, 'test', 'makey-test.el'))
        assert packager.package(make_recipe(), tree, '0.1') == bundle
        assert not os.path.exists(pjoin(bundle, 'test', 'makey-test.el'))


def test_no_metadata():
    with temp_dir() as d:
        tree = pjoin(d, 'tree')
        dump(pjoin(tree, 's.el'), ';; s\n')
        packager = Packager(pjoin(d, 'packages'), logger)
        descriptor = packager.describe(packager.package(make_recipe(name='s'), tree, '1.0'))
        assert descriptor.dependencies == {}
        assert descriptor.description == ''


def test_list_dependencies():
    with temp_dir() as d:
        tree = pjoin(d, 'tree')
        dump(pjoin(tree, 'a.el'), '')
        dump(pjoin(tree, 'package.yaml'), 'dependencies: [dash, s]\n')
        packager = Packager(pjoin(d, 'packages'), logger)
        descriptor = packager.describe(packager.package(make_recipe(name='a'), tree, '1'))
        assert descriptor.dependencies == {'dash': None, 's': None}


@pytest.mark.parametrize('metadata', [
    'dependencies: 3\n',
    'dependencies: {dash: [1]}\n',
    'dependencies: [dash\n',
])
def test_invalid_metadata(metadata):
    with temp_dir() as d:
        tree = pjoin(d, 'tree')
        dump(pjoin(tree, 'a.el'), '')
        dump(pjoin(tree, 'package.yaml'), metadata)
        with pytest.raises(PackagingError):
            Packager(pjoin(d, 'packages'), logger).package(make_recipe(name='a'), tree, '1')


def test_nothing_selected():
    with temp_dir() as d:
        tree = make_build_tree(d)
        packager = Packager(pjoin(d, 'packages'), logger)
        with pytest.raises(PackagingError):
            packager.package(make_recipe(files=['*.c']), tree, '0.1')
        assert not os.path.exists(packager.get_bundle_dir('makey', '0.1'))


def test_describe_missing_bundle():
    with temp_dir() as d:
        with pytest.raises(PackagingError):
            Packager(d, logger).describe(pjoin(d, 'makey-0.1'))


def test_create_from_config():
    with temp_dir() as d:
        packager = Packager.create_from_config(make_config(d), logger)
        assert packager.get_bundle_dir('makey', '0.1') == pjoin(d, 'packages', 'makey-0.1')
