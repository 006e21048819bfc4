#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""
Puts the PKCS#7 media type parameters back onto the outgoing Content-Type.

Mail layers that rebuild the Content-Type header from its base media type
drop ``smime-type`` and ``name``; a rehydrator armed with the parameters of
one encryption result appends them again, exactly once.
"""
import logging
import threading

LOGGER = logging.getLogger(__name__)

CONTENT_TYPE_FILTER = "mail_content_type"


class ContentTypeRehydrator(object):
    def __init__(self, registry=None):
        self.registry = registry
        self._parameters = None
        self._lock = threading.Lock()

    @classmethod
    def for_envelope(cls, envelope):
        rehydrator = cls()
        if envelope.media_type_parameters is not None:
            rehydrator.arm(envelope.media_type_parameters)
        return rehydrator

    @property
    def armed(self):
        return self._parameters is not None

    def arm(self, parameters):
        with self._lock:
            if self._parameters is not None:
                LOGGER.warning("Replacing media type parameters that were never used")
            self._parameters = parameters
            if self.registry is not None and not self.registry.has_filter(CONTENT_TYPE_FILTER, self.rehydrate):
                self.registry.add_filter(CONTENT_TYPE_FILTER, self.rehydrate)

    def rehydrate(self, content_type):
        with self._lock:
            parameters, self._parameters = self._parameters, None
            if self.registry is not None:
                self.registry.remove_filter(CONTENT_TYPE_FILTER, self.rehydrate)
        if parameters is None:
            return content_type
        return content_type + parameters

    __call__ = rehydrate
