#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""
S/MIME encrypted envelopes from plaintext mail and X.509 certificates.
"""
from .encryptor import EncryptedEnvelope, Encryptor, encrypt, select_cipher
from .exceptions import (CipherUnavailable, CleanupFailed, EncryptionFailed, ExportError,
                         MalformedEnvelope, NotACertificate, SMIMEError)
from .headers import filter_header, normalize_headers, split_headers
from .hooks import FilterRegistry, register
from .pem import der_encode, get_certificate, pem_encode, pem_to_der
from .rehydrator import ContentTypeRehydrator

__version__ = "0.1.0"
