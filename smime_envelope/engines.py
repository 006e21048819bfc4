#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""
PKCS#7 encryption engines.

An engine reads the serialized plaintext from one file and writes the
complete S/MIME structure to another: the caller's headers first, then its
own MIME headers, a blank line and the base64 body. Line endings in the
output file are plain LF.
"""
import logging
import re
import subprocess

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.ciphers import algorithms
from cryptography.hazmat.primitives.serialization import pkcs7

from .exceptions import CipherUnavailable, EncryptionFailed
from .pem import pem_encode, to_cryptography
from .scratch import ScratchSpace

LOGGER = logging.getLogger(__name__)

AES_256_CBC = "aes-256-cbc"
AES_128_CBC = "aes-128-cbc"
DES_EDE3_CBC = "des-ede3-cbc"

CONTENT_ALGORITHMS = {
    AES_128_CBC: algorithms.AES128,
    AES_256_CBC: algorithms.AES256,
}

OPENSSL_CIPHER_FLAGS = {
    AES_256_CBC: "-aes256",
    AES_128_CBC: "-aes128",
    DES_EDE3_CBC: "-des3",
}


class Pkcs7Engine(object):
    name = None

    def supported_ciphers(self):
        raise NotImplementedError

    def supports(self, cipher):
        return cipher in self.supported_ciphers()

    def encrypt(self, infile, outfile, recipients, headers, cipher):
        raise NotImplementedError

    def _check_cipher(self, cipher):
        if not self.supports(cipher):
            raise CipherUnavailable(f"{self.name} engine cannot encrypt with {cipher}")

    @staticmethod
    def _write_output(outfile, headers, smime):
        with open(outfile, "wb") as out:
            for header in headers:
                out.write(header.encode("utf-8") + b"\n")
            out.write(smime.replace(b"\r\n", b"\n"))


class CryptographyEngine(Pkcs7Engine):
    """In-process engine on top of cryptography's PKCS7 envelope builder."""
    name = "cryptography"

    def supported_ciphers(self):
        if hasattr(pkcs7.PKCS7EnvelopeBuilder, "set_content_encryption_algorithm"):
            return frozenset(CONTENT_ALGORITHMS)
        return frozenset([AES_128_CBC])

    def encrypt(self, infile, outfile, recipients, headers, cipher):
        self._check_cipher(cipher)
        with open(infile, "rb") as plain:
            data = plain.read()
        LOGGER.debug("Encrypting %s for %d recipient(s) with %s", infile, len(recipients), cipher)
        try:
            builder = pkcs7.PKCS7EnvelopeBuilder().set_data(data)
            for cert in recipients:
                builder = builder.add_recipient(to_cryptography(cert))
            if cipher != AES_128_CBC:
                builder = builder.set_content_encryption_algorithm(CONTENT_ALGORITHMS[cipher])
            smime = builder.encrypt(serialization.Encoding.SMIME, [])
        except (ValueError, TypeError) as e:
            raise EncryptionFailed(f"PKCS#7 envelope could not be built: {e}") from e
        self._write_output(outfile, headers, smime)


class OpenSSLEngine(Pkcs7Engine):
    """Runs ``openssl smime -encrypt`` against the scratch files."""
    name = "openssl"

    def __init__(self, binary="openssl", timeout=30.0, tmpdir=None):
        self.binary = binary
        self.timeout = timeout
        self.tmpdir = tmpdir
        self._ciphers = None

    def supported_ciphers(self):
        if self._ciphers is None:
            try:
                result = subprocess.run([self.binary, "list", "-cipher-algorithms"],
                                        capture_output=True, text=True,
                                        timeout=self.timeout, check=True)
            except (OSError, subprocess.SubprocessError) as e:
                LOGGER.warning("Could not list %s ciphers: %s", self.binary, e)
                return frozenset()
            names = set(re.findall(r"[a-z0-9-]+", result.stdout.lower()))
            self._ciphers = frozenset(c for c in OPENSSL_CIPHER_FLAGS if c in names)
        return self._ciphers

    def encrypt(self, infile, outfile, recipients, headers, cipher):
        self._check_cipher(cipher)
        with ScratchSpace(tmpdir=self.tmpdir, prefix="smime_rcpt_") as certs:
            cert_files = [certs.provision(pem_encode(cert).encode("ascii"), suffix=".pem")
                          for cert in recipients]
            cmd = [self.binary, "smime", "-encrypt", OPENSSL_CIPHER_FLAGS[cipher],
                   "-in", str(infile), "-out", str(outfile)]
            cmd += [scratch.path for scratch in cert_files]
            LOGGER.debug("Running %s", " ".join(cmd))
            try:
                subprocess.run(cmd, capture_output=True, timeout=self.timeout, check=True)
            except subprocess.TimeoutExpired as e:
                raise EncryptionFailed(f"openssl timed out after {self.timeout}s") from e
            except subprocess.CalledProcessError as e:
                detail = e.stderr.decode("utf-8", "replace").strip()
                raise EncryptionFailed(f"openssl exited with {e.returncode}: {detail}") from e
            except OSError as e:
                raise EncryptionFailed(f"could not run {self.binary}: {e}") from e
        with open(outfile, "rb") as out:
            smime = out.read()
        self._write_output(outfile, headers, smime)


def build_engine(config):
    if config.engine == CryptographyEngine.name:
        return CryptographyEngine()
    if config.engine == OpenSSLEngine.name:
        return OpenSSLEngine(binary=config.openssl_binary, timeout=config.timeout,
                             tmpdir=config.tmpdir)
    raise ValueError(f"unknown engine {config.engine!r}")
