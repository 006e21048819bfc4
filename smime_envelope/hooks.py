#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""
Filter registry and the S/MIME operations published through it.

Published filters follow the host convention of returning False instead of
raising when an operation fails.
"""
import copy
import itertools
import logging
import threading
from collections import defaultdict

from .encryptor import Encryptor
from .exceptions import SMIMEError
from .pem import get_certificate, pem_encode, pem_to_der
from .rehydrator import ContentTypeRehydrator

LOGGER = logging.getLogger(__name__)

DEFAULT_PRIORITY = 10

CERTIFICATE_FILTER = "smime_certificate"
PEM_ENCODE_FILTER = "smime_certificate_pem_encode"
PEM_TO_DER_FILTER = "smime_pem_to_der"
ENCRYPT_FILTER = "smime_encrypt"


class FilterRegistry(object):
    def __init__(self):
        self._filters = defaultdict(list)
        self._order = itertools.count()
        self._lock = threading.Lock()

    def add_filter(self, name, callback, priority=DEFAULT_PRIORITY):
        with self._lock:
            self._filters[name].append((priority, next(self._order), callback))
            self._filters[name].sort(key=lambda entry: entry[:2])

    def remove_filter(self, name, callback):
        with self._lock:
            entries = self._filters.get(name, [])
            for i, (_, _, registered) in enumerate(entries):
                if registered == callback:
                    del entries[i]
                    return True
        return False

    def has_filter(self, name, callback=None):
        with self._lock:
            entries = self._filters.get(name, [])
            if callback is None:
                return bool(entries)
            return any(registered == callback for _, _, registered in entries)

    def apply_filters(self, name, value, *args):
        with self._lock:
            callbacks = [callback for _, _, callback in self._filters.get(name, [])]
        for callback in callbacks:
            value = callback(value, *args)
        return value


def _returning_false(operation):
    def published(*args):
        try:
            return operation(*args)
        except SMIMEError as e:
            LOGGER.warning("%s failed: %s", operation.__name__, e)
            return False
    published.__name__ = operation.__name__
    return published


def register(registry, encryptor=None):
    """Publishes the certificate, PEM and encryption operations as filters.

    The encryption filter arms a rehydrator on the registry's
    ``mail_content_type`` filter. Returns that rehydrator. A given encryptor
    is copied, so its own rehydrator is left alone.
    """
    rehydrator = ContentTypeRehydrator(registry)
    encryptor = copy.copy(encryptor) if encryptor is not None else Encryptor()
    encryptor.rehydrator = rehydrator

    def smime_pem_to_der(pem_text):
        try:
            return pem_to_der(pem_text)
        except ValueError as e:
            LOGGER.warning("pem_to_der failed: %s", e)
            return False

    def smime_encrypt(message, headers, certificates):
        return encryptor.encrypt(message, headers, certificates).as_dict()

    registry.add_filter(CERTIFICATE_FILTER, _returning_false(get_certificate))
    registry.add_filter(PEM_ENCODE_FILTER, _returning_false(pem_encode))
    registry.add_filter(PEM_TO_DER_FILTER, smime_pem_to_der)
    registry.add_filter(ENCRYPT_FILTER, _returning_false(smime_encrypt))
    return rehydrator

