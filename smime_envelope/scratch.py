#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""
Temporary files handed to the PKCS#7 engine.

Every file is overwritten with random bytes of random length (between its
size and three times its size) before it is unlinked. This only obfuscates
the old content: copy-on-write and journaling filesystems, SSD wear
levelling and backups may all keep the plaintext around.
"""
import logging
import os
import secrets
import tempfile

from .exceptions import CleanupFailed

LOGGER = logging.getLogger(__name__)

PREFIX = "smime_"


class ScratchFile(object):
    def __init__(self, path):
        self.path = path

    def __fspath__(self):
        return self.path

    def __repr__(self):
        return f"ScratchFile({self.path!r})"

    def exists(self):
        return os.path.exists(self.path)

    def read_bytes(self):
        with open(self.path, "rb") as scratch:
            return scratch.read()


def overwrite(path):
    size = os.path.getsize(path)
    noise = secrets.token_bytes(size + secrets.randbelow(2 * size + 1))
    with open(path, "r+b") as scratch:
        scratch.write(noise)
        scratch.flush()
        os.fsync(scratch.fileno())
    return len(noise)


def destroy(path):
    """Overwrites and removes one file. Missing files are ignored.

    Raises CleanupFailed, after still trying to unlink, if either step fails.
    """
    if not os.path.exists(path):
        return
    failure = None
    try:
        written = overwrite(path)
        LOGGER.debug("Overwrote %s with %d random bytes", path, written)
    except OSError as e:
        failure = e
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        failure = failure or e
    if failure is not None:
        raise CleanupFailed(os.fspath(path), failure) from failure


class ScratchSpace(object):
    """Owns the scratch files of one encryption call.

    Used as a context manager; leaving it destroys every file it handed out,
    each one independently of the others. Cleanup errors are logged and kept
    in ``failures`` instead of being raised.
    """

    def __init__(self, tmpdir=None, prefix=PREFIX):
        self.tmpdir = tmpdir
        self.prefix = prefix
        self.files = []
        self.failures = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.destroy_all()
        return False

    def _allocate(self, suffix):
        fd, path = tempfile.mkstemp(prefix=self.prefix, suffix=suffix, dir=self.tmpdir)
        scratch = ScratchFile(path)
        self.files.append(scratch)
        LOGGER.debug("Allocated scratch file %s", path)
        return fd, scratch

    def provision(self, content, suffix=".txt"):
        fd, scratch = self._allocate(suffix)
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
        return scratch

    def reserve(self, suffix=".enc"):
        fd, scratch = self._allocate(suffix)
        os.close(fd)
        return scratch

    def destroy_all(self):
        files, self.files = self.files, []
        for scratch in files:
            try:
                destroy(scratch.path)
            except CleanupFailed as e:
                LOGGER.error("Scratch file cleanup failed, sensitive data may remain: %s", e)
                self.failures.append(e)
