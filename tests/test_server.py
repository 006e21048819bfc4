#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""ZeroMQ service tests."""

import shutil
import threading
from base64 import b64decode, b64encode

import pytest
import zmq

from smime_envelope.config import EncryptorConfig
from smime_envelope.encryptor import Encryptor
from smime_envelope.engines import CryptographyEngine
from smime_envelope.mailer import base_media_type
from smime_envelope.server import Service, serve
from smime_helpers import content_type_param

LEGACY_OUTPUT = (b"MIME-Version: 1.0\n"
                 b"Content-Disposition: attachment; filename=smime.p7m\n"
                 b"Content-Type: application/x-pkcs7-mime; smime-type=enveloped-data; name=smime.p7m\n"
                 b"Content-Transfer-Encoding: base64\n\nMIIBAAAA\n")


class LegacyMediaTypeEngine(CryptographyEngine):
    def encrypt(self, infile, outfile, recipients, headers, cipher):
        with open(outfile, "wb") as out:
            out.write(LEGACY_OUTPUT)


def envelope_content_type(headers):
    for line in headers.splitlines():
        if line.lower().startswith("content-type:"):
            return line.split(":", 1)[1].strip()
    return None


requires_openssl = pytest.mark.skipif(shutil.which("openssl") is None, reason="openssl binary not found")


@pytest.fixture()
def service(config):
    return Service(Encryptor(config=config))


class TestService:
    def test_get_certificate_from_der(self, service, alice):
        reply = service.handle({"op": "get-certificate",
                                "certificate": b64encode(alice.cert_der).decode("ascii")})
        assert reply == {"ok": True, "certificate": alice.cert_pem}

    def test_pem_encode(self, service, alice):
        assert service.handle({"op": "pem-encode", "certificate": alice.cert_pem})["certificate"] == alice.cert_pem

    def test_pem_to_der(self, service, alice):
        reply = service.handle({"op": "pem-to-der", "pem": alice.cert_pem})
        assert reply["ok"]
        assert b64decode(reply["der"]) == alice.cert_der

    def test_smime_encrypt(self, service, alice, scratch_dir):
        reply = service.handle({"op": "smime-encrypt", "message": "hello",
                                "headers": "Content-Type: text/html\nX-Test: 1",
                                "certificates": alice.cert_pem})
        assert reply["ok"]
        assert reply["headers"].startswith("X-Test: 1\n")
        assert reply["message"]
        assert reply["content_type"].startswith("application/pkcs7-mime;")
        assert content_type_param(reply["content_type"], "smime-type") == "enveloped-data"
        assert list(scratch_dir.iterdir()) == []

    @pytest.mark.parametrize("request_, error", [
        ({"op": "get-certificate", "certificate": "!!not base64!!"}, "BadRequest"),
        ({"op": "get-certificate", "certificate": b64encode(b"junk").decode("ascii")}, "NotACertificate"),
        ({"op": "smime-encrypt", "message": "hello", "certificates": []}, "BadRequest"),
        ({"op": "smime-encrypt", "message": "hello", "certificates": 5}, "BadRequest"),
        ({"op": "smime-encrypt", "message": "hello", "certificates": {"pem": "x"}}, "BadRequest"),
        ({"op": "smime-encrypt", "message": ["hello"], "certificates": "x"}, "BadRequest"),
        ({"op": "smime-encrypt", "message": "hello", "headers": 5, "certificates": "x"}, "BadRequest"),
        ({"op": "smime-encrypt", "message": "hello", "headers": ["X-Test: 1", 2], "certificates": "x"},
         "BadRequest"),
        ({"op": "smime-encrypt", "message": "hello", "certificates": [5]}, "BadRequest"),
        ({"op": "pem-to-der"}, "BadRequest"),
        ({"op": "explode"}, "BadRequest"),
        (["not", "an", "object"], "BadRequest"),
    ])
    def test_errors(self, service, request_, error):
        reply = service.handle(request_)
        assert reply["ok"] is False
        assert reply["error"] == error

    def test_content_type_follows_engine_media_type(self, config, alice, scratch_dir):
        service = Service(Encryptor(engine=LegacyMediaTypeEngine(), config=config))
        reply = service.handle({"op": "smime-encrypt", "message": "hello", "certificates": alice.cert_pem})
        assert reply["ok"]
        assert base_media_type(reply["content_type"]) == "application/x-pkcs7-mime"
        assert content_type_param(reply["content_type"], "smime-type") == "enveloped-data"
        assert content_type_param(reply["content_type"], "name") == "smime.p7m"
        assert list(scratch_dir.iterdir()) == []

    @requires_openssl
    def test_openssl_engine_content_type(self, alice, scratch_dir):
        service = Service(Encryptor(config=EncryptorConfig(engine="openssl", tmpdir=str(scratch_dir))))
        reply = service.handle({"op": "smime-encrypt", "message": "hello", "headers": "X-Test: 1",
                                "certificates": alice.cert_pem})
        assert reply["ok"]
        header_value = envelope_content_type(reply["headers"])
        assert base_media_type(reply["content_type"]) == base_media_type(header_value)
        assert content_type_param(reply["content_type"], "smime-type") == "enveloped-data"
        assert list(scratch_dir.iterdir()) == []


def test_serve_over_ipc(service, alice, tmp_path):
    address = f"ipc://{tmp_path}/smime.ipc"
    thread = threading.Thread(target=serve, args=(service, address), daemon=True)
    thread.start()

    context = zmq.Context()
    socket = context.socket(zmq.REQ)
    socket.setsockopt(zmq.RCVTIMEO, 10000)
    socket.setsockopt(zmq.LINGER, 0)
    socket.connect(address)
    try:
        socket.send_json({"op": "pem-to-der", "pem": alice.cert_pem})
        reply = socket.recv_json()
        assert b64decode(reply["der"]) == alice.cert_der
        socket.send_json({"op": "close"})
        assert socket.recv_json() == {"ok": True}
    finally:
        socket.close()
        context.term()
    thread.join(timeout=10)
    assert not thread.is_alive()
