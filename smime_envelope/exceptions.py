#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""
Error kinds raised by the S/MIME envelope pipeline.
"""


class SMIMEError(Exception):
    pass


class NotACertificate(SMIMEError):
    pass


class ExportError(SMIMEError):
    pass


class EncryptionFailed(SMIMEError):
    pass


class MalformedEnvelope(SMIMEError):
    pass


class CipherUnavailable(SMIMEError):
    pass


class CleanupFailed(SMIMEError):
    """Scratch file could not be overwritten or removed.

    Never raised out of an encryption call, only logged and recorded.
    """

    def __init__(self, path, cause):
        super(CleanupFailed, self).__init__(f"could not destroy {path}: {cause}")
        self.path = path
        self.cause = cause
