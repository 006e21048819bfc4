#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""
S/MIME envelope encryption for one message and a set of recipients.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .config import EncryptorConfig
from .engines import AES_256_CBC, DES_EDE3_CBC, build_engine
from .exceptions import CipherUnavailable, EncryptionFailed
from .headers import media_type_parameters, normalize_headers, split_envelope
from .pem import get_certificate
from .scratch import ScratchSpace

LOGGER = logging.getLogger(__name__)

PREFERRED_CIPHER = AES_256_CBC
LEGACY_CIPHER = DES_EDE3_CBC


@dataclass(frozen=True)
class EncryptedEnvelope:
    headers: str
    message: str
    media_type_parameters: Optional[str] = None

    def as_dict(self):
        return {"headers": self.headers, "message": self.message}


def select_cipher(engine, allow_legacy=False):
    if engine.supports(PREFERRED_CIPHER):
        return PREFERRED_CIPHER
    if allow_legacy and engine.supports(LEGACY_CIPHER):
        LOGGER.warning("%s unavailable in the %s engine, falling back to %s",
                       PREFERRED_CIPHER, engine.name, LEGACY_CIPHER)
        return LEGACY_CIPHER
    raise CipherUnavailable(f"{engine.name} engine does not offer {PREFERRED_CIPHER}")


def recipient_list(certificates):
    if isinstance(certificates, (list, tuple)):
        return [get_certificate(cert) for cert in certificates]
    return [get_certificate(certificates)]


def serialize(headers, message):
    return ("\n".join(headers) + "\n\n" + message).encode("utf-8")


class Encryptor(object):
    """Encrypts messages through a PKCS#7 engine that works on files.

    If a ContentTypeRehydrator is given, it is armed with the media type
    parameters of every result; otherwise they are only carried on the
    returned envelope.
    """

    def __init__(self, engine=None, config=None, rehydrator=None):
        self.config = config or EncryptorConfig()
        self.engine = engine or build_engine(self.config)
        self.rehydrator = rehydrator

    def encrypt(self, message, headers, certificates):
        recipients = recipient_list(certificates)
        headers = normalize_headers(headers)
        plaintext = serialize(headers, message)
        cipher = select_cipher(self.engine, self.config.allow_legacy_cipher)

        smime = None
        with ScratchSpace(tmpdir=self.config.tmpdir) as scratch:
            infile = scratch.provision(plaintext)
            outfile = scratch.reserve()
            try:
                self.engine.encrypt(infile.path, outfile.path, recipients, headers, cipher)
                smime = outfile.read_bytes().decode("utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise EncryptionFailed(f"engine output unavailable: {e}") from e
        if not smime:
            raise EncryptionFailed(f"{self.engine.name} engine produced no output")

        envelope_headers, body = split_envelope(smime)
        parameters = media_type_parameters(envelope_headers)
        if parameters is not None and self.rehydrator is not None:
            self.rehydrator.arm(parameters)
        return EncryptedEnvelope(envelope_headers, body, parameters)


def encrypt(message, headers, certificates, config=None):
    return Encryptor(config=config).encrypt(message, headers, certificates)
