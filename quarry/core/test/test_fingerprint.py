import os
from os.path import join as pjoin

import pytest

from ..fingerprint import FingerprintEngine, fingerprint_tree, later_timestamp
from ..recipe import Recipe
from ..common import FingerprintError
from .utils import temp_dir, dump, cat, logger, tree_snapshot, FixedClock
from ...util.logger_fixtures import log_capture


def make_recipe(**fields):
    doc = {'name': 'makey', 'fetcher': 'file', 'path': '/nonexisting'}
    doc.update(fields)
    return Recipe(doc)


def make_tree(d, files):
    for name, contents in files.items():
        dump(pjoin(d, name), contents)
    return d


def test_fingerprint_tree_contents_only():
    recipe = make_recipe()
    with temp_dir() as d:
        a = make_tree(pjoin(d, 'a'), {'makey.el': 'x', 'sub/b.el': 'y'})
        b = make_tree(pjoin(d, 'b'), {'makey.el': 'x', 'sub/b.el': 'y'})
        os.utime(pjoin(b, 'makey.el'), (0, 0))
        assert fingerprint_tree(recipe, a) == fingerprint_tree(recipe, b)
        # hidden files are not selected by default
        dump(pjoin(b, '.git', 'HEAD'), 'ref: refs/heads/master\n')
        assert fingerprint_tree(recipe, a) == fingerprint_tree(recipe, b)
        dump(pjoin(b, 'sub', 'b.el'), 'z')
        assert fingerprint_tree(recipe, a) != fingerprint_tree(recipe, b)


def test_fingerprint_tree_names_matter():
    recipe = make_recipe()
    with temp_dir() as d:
        a = make_tree(pjoin(d, 'a'), {'ab': 'c'})
        b = make_tree(pjoin(d, 'b'), {'a': 'bc'})
        assert fingerprint_tree(recipe, a) != fingerprint_tree(recipe, b)


def test_fingerprint_tree_follows_file_rules():
    with temp_dir() as d:
        a = make_tree(pjoin(d, 'a'), {'makey.el': 'x', 'README': 'y'})
        only_el = make_recipe(files=['*.el'])
        before = fingerprint_tree(only_el, a)
        dump(pjoin(a, 'README'), 'changed')
        assert fingerprint_tree(only_el, a) == before
        # the recipe is part of the fingerprint
        assert fingerprint_tree(make_recipe(), a) != before


def test_fingerprint_tree_symlink():
    recipe = make_recipe()
    with temp_dir() as d:
        a = make_tree(pjoin(d, 'a'), {'target.el': 'x'})
        os.symlink('target.el', pjoin(a, 'link.el'))
        before = fingerprint_tree(recipe, a)
        os.unlink(pjoin(a, 'link.el'))
        os.symlink('other.el', pjoin(a, 'link.el'))
        assert fingerprint_tree(recipe, a) != before


def test_first_build_and_reuse():
    recipe = make_recipe()
    clock = FixedClock()
    with temp_dir() as d:
        src = make_tree(pjoin(d, 'src'), {'makey.el': ';; makey\n'})
        build_dir = pjoin(d, 'build')
        engine = FingerprintEngine(logger, clock)
        assert engine.read_record('makey', build_dir) is None
        version = engine.check('makey', recipe, src, build_dir)
        assert version == '20140406.1613'
        assert cat(pjoin(build_dir, 'makey', 'makey.el')) == ';; makey\n'
        content_hash, stored = engine.read_record('makey', build_dir)
        assert stored == version

        snapshot = tree_snapshot(pjoin(build_dir, 'makey'))
        clock.advance(60)
        with log_capture() as log:
            again = FingerprintEngine(log, clock).check('makey', recipe, src, build_dir)
        assert again == version
        assert engine.read_record('makey', build_dir) == (content_hash, version)
        assert tree_snapshot(pjoin(build_dir, 'makey')) == snapshot
        log.assertLogged('Up to date')


def test_changed_source_gets_new_stamp():
    recipe = make_recipe()
    clock = FixedClock()
    with temp_dir() as d:
        src = make_tree(pjoin(d, 'src'), {'makey.el': 'v2'})
        build_dir = pjoin(d, 'build')
        engine = FingerprintEngine(logger, clock)
        make_tree(pjoin(build_dir, 'makey'), {'makey.el': 'v1', 'obsolete.el': ''})
        engine.write_record('makey', build_dir, 'stale-hash', '20140101.0000')
        version = engine.check('makey', recipe, src, build_dir)
        assert version == '20140406.1613'
        assert engine.read_record('makey', build_dir)[1] == version
        assert cat(pjoin(build_dir, 'makey', 'makey.el')) == 'v2'
        assert not os.path.exists(pjoin(build_dir, 'makey', 'obsolete.el'))


def test_change_within_the_same_minute():
    recipe = make_recipe()
    clock = FixedClock()
    with temp_dir() as d:
        src = make_tree(pjoin(d, 'src'), {'makey.el': 'v1'})
        build_dir = pjoin(d, 'build')
        engine = FingerprintEngine(logger, clock)
        assert engine.check('makey', recipe, src, build_dir) == '20140406.1613'
        dump(pjoin(src, 'makey.el'), 'v2')
        assert engine.check('makey', recipe, src, build_dir) == '20140406.1614'
        dump(pjoin(src, 'makey.el'), 'v3')
        assert engine.check('makey', recipe, src, build_dir) == '20140406.1615'
        assert cat(pjoin(build_dir, 'makey', 'makey.el')) == 'v3'
        # once the clock catches up, the stamp is reused as long as nothing changes
        clock.advance(60)
        assert engine.check('makey', recipe, src, build_dir) == '20140406.1615'


def test_later_timestamp():
    assert later_timestamp('20140406.1613', None) == '20140406.1613'
    assert later_timestamp('20140406.1613', '0.3') == '20140406.1613'
    assert later_timestamp('20140406.1613', '20140406.1612') == '20140406.1613'
    assert later_timestamp('20140406.1613', '20140406.1613') == '20140406.1614'
    # a clock running behind the last build
    assert later_timestamp('20140406.1613', '20140406.2359') == '20140407.0000'


def test_check_logs_to_given_logger():
    with temp_dir() as d:
        src = make_tree(pjoin(d, 'src'), {'makey.el': 'x'})
        engine = FingerprintEngine(logger, FixedClock())
        with log_capture() as log:
            engine.check('makey', make_recipe(), src, pjoin(d, 'build'), logger=log)
        log.assertLogged('INFO:Building version 20140406.1613')


def test_missing_tree_is_restored():
    recipe = make_recipe()
    clock = FixedClock()
    with temp_dir() as d:
        src = make_tree(pjoin(d, 'src'), {'makey.el': 'x'})
        build_dir = pjoin(d, 'build')
        engine = FingerprintEngine(logger, clock)
        version = engine.check('makey', recipe, src, build_dir)
        os.rename(pjoin(build_dir, 'makey'), pjoin(d, 'moved'))
        clock.advance(5)
        assert engine.check('makey', recipe, src, build_dir) == version
        assert cat(pjoin(build_dir, 'makey', 'makey.el')) == 'x'


def test_original_version_type():
    clock = FixedClock()
    with temp_dir() as d:
        src = make_tree(pjoin(d, 'src'), {'makey.el': 'x'})
        build_dir = pjoin(d, 'build')
        engine = FingerprintEngine(logger, clock)
        recipe = make_recipe(version_type='original')
        assert engine.check('makey', recipe, src, build_dir, upstream_version='0.3') == '0.3'
        # a stable recipe also prefers the upstream version
        stable = make_recipe(stable=True)
        assert engine.make_stamp(stable, 'v1.2') == 'v1.2'


def test_original_without_upstream_version():
    with log_capture() as log:
        engine = FingerprintEngine(log, FixedClock())
        stamp = engine.make_stamp(make_recipe(version_type='original'), None)
    assert stamp == '20140406.1613'
    log.assertLogged('WARNING:No upstream version for makey')


def test_snapshot_ignores_upstream_version():
    engine = FingerprintEngine(logger, FixedClock(2015, 1, 2, 3, 4))
    assert engine.make_stamp(make_recipe(), '0.3') == '20150102.0304'


def test_corrupt_stamp():
    with temp_dir() as d:
        engine = FingerprintEngine(logger, FixedClock())
        dump(engine.stamp_filename('makey', d), 'not json')
        with pytest.raises(FingerprintError):
            engine.read_record('makey', d)
        dump(engine.stamp_filename('makey', d), '{"hash": "abc"}')
        with pytest.raises(FingerprintError):
            engine.read_record('makey', d)


def test_missing_source():
    with temp_dir() as d:
        engine = FingerprintEngine(logger, FixedClock())
        build_dir = pjoin(d, 'build')
        with pytest.raises(FingerprintError):
            engine.check('makey', make_recipe(), pjoin(d, 'nonexisting'), build_dir)
        assert engine.read_record('makey', build_dir) is None


def test_forget():
    with temp_dir() as d:
        src = make_tree(pjoin(d, 'src'), {'makey.el': 'x'})
        build_dir = pjoin(d, 'build')
        engine = FingerprintEngine(logger, FixedClock())
        engine.check('makey', make_recipe(), src, build_dir)
        engine.forget('makey', build_dir)
        assert not os.path.exists(pjoin(build_dir, 'makey'))
        assert engine.read_record('makey', build_dir) is None
        # forgetting twice is fine
        engine.forget('makey', build_dir)
