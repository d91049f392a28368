import os
from os.path import join as pjoin

import pytest

from .utils import temp_working_dir
from ..ant_glob import ant_iglob, expand_file_rules, DEFAULT_FILES


def makefiles(lst):
    for x in lst:
        x = x.strip()
        dirname, basename = os.path.split(x)
        if dirname != '' and not os.path.exists(dirname):
            os.makedirs(dirname)
        with open(x, 'w'):
            pass


@pytest.mark.parametrize('expected, pattern', [
    (['a0/b0/c0/d0.txt'], 'a0/b0/c0/d0.txt'),
    (['a0/b1/c1/d0.txt', 'a0/b0/c0/d0.txt'], 'a0/**/d0.txt'),
    (['a0/b.txt', 'a0/b1/c1/d0.txt', 'a0/b0/c0/d0.txt', 'a0/b0/c0/d1.txt'], 'a0/**/*.txt'),
    (['a0/b0/c0/d0.txt', 'a0/b0/c0/d1.txt'], '**/b0/**/*.txt'),
])
def test_basic(expected, pattern):
    with temp_working_dir() as d:
        makefiles('a0/b0/c0/d0.txt a0/b0/c0/d1.txt a0/b1/c1/d0.txt a0/b.txt a0/b.txt2'.split())
        assert sorted(expected) == sorted(ant_iglob(pattern, d))


def test_dirs():
    with temp_working_dir() as d:
        makefiles('a0/f b0/f c0/f'.split())
        assert ['a0', 'b0', 'c0'] == sorted(ant_iglob('*', d))
        assert [] == sorted(ant_iglob('*', d, include_dirs=False))


def test_illegal_patterns():
    with temp_working_dir() as d:
        with pytest.raises(ValueError):
            list(ant_iglob('/abs/*', d))
        with pytest.raises(ValueError):
            list(ant_iglob('**', d))
        with pytest.raises(NotImplementedError):
            list(ant_iglob('**.txt', d))


def test_expand_file_rules():
    with temp_working_dir() as d:
        makefiles('makey.el makey-pkg.el test/test-makey.el doc/makey.texi'.split())
        assert ['makey-pkg.el', 'makey.el'] == expand_file_rules(d, ['*.el'])
        assert ['makey.el', 'test/test-makey.el'] == expand_file_rules(
            d, ['**/*.el', {'exclude': ['*-pkg.el']}])
        # exclusion only applies to what was matched before it
        assert ['doc/makey.texi', 'makey.el'] == expand_file_rules(
            d, ['*.el', {'exclude': ['*-pkg.el']}, 'doc/*'])


def test_default_rules_skip_hidden_files():
    with temp_working_dir() as d:
        makefiles('a.el .hidden sub/b.el .git/config sub/.cache/x'.split())
        assert ['a.el', 'sub/b.el'] == expand_file_rules(d)
        assert expand_file_rules(d) == expand_file_rules(d, list(DEFAULT_FILES))
