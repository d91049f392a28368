import os
import errno
import shutil
import tempfile
import time
from os.path import join as pjoin


def silent_makedirs(path):
    """like os.makedirs, but does not raise error in the event that the directory already exists"""
    try:
        os.makedirs(path)
    except OSError:
        if not os.path.isdir(path):
            raise


def silent_unlink(path):
    """like os.unlink but does not raise error if the file does not exist"""
    try:
        os.unlink(path)
    except OSError:
        if os.path.exists(path):
            raise


def robust_rmtree(path, logger=None, max_retries=6):
    """Robustly tries to delete paths.

    Retries several times (with increasing delays) if an OSError
    occurs.  If the final attempt fails, the Exception is propagated
    to the caller.
    """
    dt = 1
    for i in range(max_retries):
        try:
            shutil.rmtree(path)
            return
        except OSError as e:
            if e.errno == errno.ENOENT:
                return
            if logger:
                logger.info('Unable to remove path: %s' % path)
                logger.info('Retrying after %d seconds' % dt)
            time.sleep(dt)
            dt *= 2

    # Final attempt, pass any Exceptions up to caller.
    shutil.rmtree(path)


def atomic_write(filename, contents):
    """Writes `contents` (str) to `filename` by writing to a temporary
    file in the same directory and renaming it into place.
    """
    dirname = os.path.dirname(os.path.abspath(filename))
    silent_makedirs(dirname)
    fd, temp_filename = tempfile.mkstemp(dir=dirname, prefix='.tmp-')
    try:
        with os.fdopen(fd, 'w') as f:
            f.write(contents)
        os.replace(temp_filename, filename)
    except Exception:
        silent_unlink(temp_filename)
        raise


def copy_tree(src, dst, ignore=('.git', '.hg', '.svn', '.bzr')):
    """Copies the directory `src` to the non-existing `dst`, skipping VCS
    metadata directories and keeping symlinks as symlinks.
    """
    shutil.copytree(src, dst, symlinks=True, ignore=shutil.ignore_patterns(*ignore))


def replace_tree(src, dst, logger=None):
    """Replaces the directory `dst` with a copy of `src`.

    The copy is made next to `dst` and swapped in with renames, so that
    `dst` either holds the old or the complete new contents, never a
    partial copy.
    """
    parent = os.path.dirname(os.path.abspath(dst))
    silent_makedirs(parent)
    staging = tempfile.mkdtemp(prefix='.new-', dir=parent)
    new_tree = pjoin(staging, 'tree')
    try:
        copy_tree(src, new_tree)
    except Exception:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    old_tree = None
    if os.path.exists(dst):
        old_tree = pjoin(staging, 'old')
        os.rename(dst, old_tree)
    try:
        os.rename(new_tree, dst)
    except Exception:
        if old_tree is not None:
            os.rename(old_tree, dst)
        shutil.rmtree(staging, ignore_errors=True)
        raise
    robust_rmtree(staging, logger)

