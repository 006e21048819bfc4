#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""
Certificate acquisition and PEM/DER conversions.
"""
import logging
import os
import warnings
from base64 import b64decode
from binascii import Error as Base64Error

from OpenSSL import crypto
from cryptography import x509

from .exceptions import ExportError, NotACertificate

LOGGER = logging.getLogger(__name__)

PEM_LABEL_PREFIX = "-----"
FILE_SCHEME = "file://"


def _read_material(material):
    if isinstance(material, os.PathLike):
        with open(material, "rb") as cert_file:
            return cert_file.read()
    if isinstance(material, str) and material.startswith(FILE_SCHEME):
        with open(material[len(FILE_SCHEME):], "rb") as cert_file:
            return cert_file.read()
    if isinstance(material, str):
        return material.encode("ascii")
    if isinstance(material, (bytes, bytearray, memoryview)):
        return bytes(material)
    raise TypeError(f"unsupported certificate material: {type(material).__name__}")


def _load(material):
    if isinstance(material, crypto.X509):
        return material
    if isinstance(material, x509.Certificate):
        return crypto.X509.from_cryptography(material)
    data = _read_material(material)
    if PEM_LABEL_PREFIX.encode("ascii") in data:
        return crypto.load_certificate(crypto.FILETYPE_PEM, data)
    return crypto.load_certificate(crypto.FILETYPE_ASN1, data)


def get_certificate(material):
    """Returns an X.509 certificate handle for PEM, DER or a path to either.

    Raises NotACertificate for anything that does not parse as one.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            cert = _load(material)
        except (crypto.Error, ValueError, TypeError, UnicodeError, OSError) as e:
            LOGGER.debug("Rejected certificate material: %s", e)
            raise NotACertificate(str(e) or "not an X.509 certificate") from e
    if not isinstance(cert, crypto.X509):
        raise NotACertificate(f"got {type(cert).__name__}, not an X.509 certificate")
    return cert


def _check_handle(cert):
    if not isinstance(cert, crypto.X509):
        raise ExportError(f"cannot export {type(cert).__name__}, not an X.509 certificate")


def pem_encode(cert):
    _check_handle(cert)
    try:
        return crypto.dump_certificate(crypto.FILETYPE_PEM, cert).decode("ascii")
    except (crypto.Error, TypeError, ValueError) as e:
        raise ExportError(f"PEM export failed: {e}") from e


def der_encode(cert):
    _check_handle(cert)
    try:
        return crypto.dump_certificate(crypto.FILETYPE_ASN1, cert)
    except (crypto.Error, TypeError, ValueError) as e:
        raise ExportError(f"DER export failed: {e}") from e


def pem_to_der(pem_text):
    """Strips the RFC 7468 labels from one PEM object and decodes the rest.

    The result is not checked to be valid DER. Only pass a single object:
    several label pairs in one string are concatenated, not rejected.
    """
    if isinstance(pem_text, (bytes, bytearray)):
        pem_text = pem_text.decode("ascii")
    der_lines = []
    for line in pem_text.split("\n"):
        line = line.strip()
        if line.startswith(PEM_LABEL_PREFIX):
            continue
        der_lines.append(line)
    try:
        return b64decode("".join(der_lines))
    except Base64Error as e:
        raise ValueError(f"invalid base64 in PEM body: {e}") from e


def to_cryptography(cert):
    return get_certificate(cert).to_cryptography()
