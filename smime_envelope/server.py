#! /usr/bin/env python3
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.
"""
ZeroMQ request/reply service for the S/MIME operations.

Requests are JSON objects with an ``op`` key:

    {"op": "get-certificate", "certificate": "<PEM>"}
    {"op": "pem-encode", "certificate": "<PEM or base64 DER>"}
    {"op": "pem-to-der", "pem": "<PEM>"}
    {"op": "smime-encrypt", "message": "...", "headers": [...], "certificates": [...]}
    {"op": "close"}

Replies carry ``"ok": true`` and the result, or ``"ok": false`` with the
error kind. A REP socket answers one request at a time, so one encryption
and the content type that goes with it never interleave with another.
"""
import argparse
import logging
from base64 import b64decode, b64encode
from binascii import Error as Base64Error

# pylint: disable=import-error
import zmq

from .config import LOG_FORMAT, EncryptorConfig, add_arguments
from .encryptor import Encryptor
from .exceptions import SMIMEError
from .mailer import Mailer, envelope_media_type
from .pem import PEM_LABEL_PREFIX, get_certificate, pem_encode, pem_to_der
from .rehydrator import ContentTypeRehydrator

LOGGER = logging.getLogger(__name__)

DEFAULT_BIND = "ipc:///tmp/smime.ipc"


class BadRequest(Exception):
    pass


def _certificate_material(value):
    if not isinstance(value, str):
        raise BadRequest("certificate must be a string")
    if PEM_LABEL_PREFIX in value:
        return value
    try:
        return b64decode(value, validate=True)
    except Base64Error as e:
        raise BadRequest(f"certificate is neither PEM nor base64 DER: {e}") from e


class Service(object):
    def __init__(self, encryptor):
        self.encryptor = encryptor
        self.mailer = Mailer()
        self.handlers = {
            "get-certificate": self.get_certificate,
            "pem-encode": self.pem_encode,
            "pem-to-der": self.pem_to_der,
            "smime-encrypt": self.smime_encrypt,
        }

    def get_certificate(self, request):
        cert = get_certificate(_certificate_material(request.get("certificate")))
        return {"certificate": pem_encode(cert)}

    def pem_encode(self, request):
        return self.get_certificate(request)

    def pem_to_der(self, request):
        pem = request.get("pem")
        if not isinstance(pem, str):
            raise BadRequest("pem must be a string")
        try:
            der = pem_to_der(pem)
        except ValueError as e:
            raise BadRequest(str(e)) from e
        return {"der": b64encode(der).decode("ascii")}

    def smime_encrypt(self, request):
        certificates = request.get("certificates")
        if isinstance(certificates, str):
            certificates = [certificates]
        if not isinstance(certificates, list) or not certificates:
            raise BadRequest("at least one certificate is required")
        message = request.get("message", "")
        if not isinstance(message, str):
            raise BadRequest("message must be a string")
        headers = request.get("headers", [])
        if not isinstance(headers, str) and not (
                isinstance(headers, list) and all(isinstance(h, str) for h in headers)):
            raise BadRequest("headers must be a string or a list of strings")
        material = [_certificate_material(cert) for cert in certificates]
        envelope = self.encryptor.encrypt(message, headers, material)
        rehydrator = ContentTypeRehydrator.for_envelope(envelope)
        result = envelope.as_dict()
        result["content_type"] = self.mailer.content_type(envelope_media_type(envelope), rehydrator)
        return result

    def handle(self, request):
        if not isinstance(request, dict):
            return {"ok": False, "error": "BadRequest", "detail": "request must be an object"}
        handler = self.handlers.get(request.get("op"))
        if handler is None:
            return {"ok": False, "error": "BadRequest", "detail": f"unknown op {request.get('op')!r}"}
        try:
            result = handler(request)
        except (SMIMEError, BadRequest) as e:
            LOGGER.warning("%s failed: %s", request["op"], e)
            return {"ok": False, "error": type(e).__name__, "detail": str(e)}
        result["ok"] = True
        return result


def serve(service, bind=DEFAULT_BIND):
    context = zmq.Context()
    socket = context.socket(zmq.REP)
    socket.bind(bind)
    LOGGER.info("Listening on %s", bind)
    try:
        while True:
            try:
                request = socket.recv_json()
            except ValueError as e:
                socket.send_json({"ok": False, "error": "BadRequest", "detail": f"invalid JSON: {e}"})
                continue
            if isinstance(request, dict) and request.get("op") == "close":
                socket.send_json({"ok": True})
                LOGGER.info("Closing ...")
                break
            socket.send_json(service.handle(request))
    except KeyboardInterrupt:
        LOGGER.info("Ending due to user request")
    finally:
        socket.close()
        context.term()


def parse_args(argv=None):
    """
    Parse command line arguments.
    """
    parser = argparse.ArgumentParser("Serve S/MIME envelope operations over ZeroMQ.")
    parser.add_argument("--bind", metavar="address", default=DEFAULT_BIND,
                        help="ZeroMQ address to bind the REP socket to.")
    add_arguments(parser)
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)
    service = Service(Encryptor(config=EncryptorConfig.from_args(args)))
    serve(service, args.bind)


if __name__ == "__main__":
    main()
