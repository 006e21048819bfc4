#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""Pytest fixtures: throwaway RSA recipients and their certificates."""

import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from smime_envelope.config import EncryptorConfig


def make_certificate(key, common_name):
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(key, hashes.SHA256())
    )


class Recipient:
    def __init__(self, common_name):
        self.key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self.certificate = make_certificate(self.key, common_name)
        self.cert_pem = self.certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")
        self.cert_der = self.certificate.public_bytes(serialization.Encoding.DER)
        self.key_pem = self.key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )


@pytest.fixture(scope="session")
def alice():
    return Recipient("alice@example.org")


@pytest.fixture(scope="session")
def bob():
    return Recipient("bob@example.org")


@pytest.fixture(scope="session")
def ec_cert_pem():
    key = ec.generate_private_key(ec.SECP256R1())
    cert = make_certificate(key, "ec@example.org")
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


@pytest.fixture()
def scratch_dir(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture()
def config(scratch_dir):
    return EncryptorConfig(tmpdir=str(scratch_dir))
