#! /usr/bin/env python3
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.
"""
Command line entry point: encrypt a message, convert PEM to DER, or serve.
"""
import argparse
import logging
import sys

from .config import LOG_FORMAT, EncryptorConfig, add_arguments
from .encryptor import Encryptor
from .exceptions import SMIMEError
from .mailer import Mailer
from .pem import pem_to_der
from .rehydrator import ContentTypeRehydrator
from .server import DEFAULT_BIND, Service, serve


def eprint(*args, **kwargs):
    print(*args, file=sys.stderr, **kwargs)


def parse_args(argv=None):
    """
    Parse command line arguments.
    """
    parser = argparse.ArgumentParser("smime-envelope", description="Build S/MIME encrypted mail.")
    add_arguments(parser)
    commands = parser.add_subparsers(dest="command", required=True)

    encrypt = commands.add_parser("encrypt", help="Encrypt a message for one or more certificates.")
    encrypt.add_argument("certificates", metavar="cert_file", nargs="+",
                         help="Recipient certificate, PEM or DER.")
    encrypt.add_argument("--message", metavar="file", type=argparse.FileType("r"), default=sys.stdin,
                         help="Message body (default: stdin).")
    encrypt.add_argument("--header", dest="headers", metavar="header", action="append", default=[],
                         help="Header for the encrypted part, e.g. 'Subject: hi'. Repeatable.")
    encrypt.add_argument("--from", dest="sender", default=None)
    encrypt.add_argument("--to", dest="recipients", action="append", default=[])
    encrypt.add_argument("--subject", default=None)

    der = commands.add_parser("pem-to-der", help="Strip PEM labels and decode to DER.")
    der.add_argument("pem_file", type=argparse.FileType("r"))
    der.add_argument("der_file", type=argparse.FileType("wb"))

    server = commands.add_parser("serve", help="Answer requests on a ZeroMQ REP socket.")
    server.add_argument("--bind", metavar="address", default=DEFAULT_BIND)
    return parser.parse_args(argv)


def run_encrypt(args, encryptor):
    certificates = [f"file://{path}" for path in args.certificates]
    with args.message as message:
        body = message.read()
    envelope = encryptor.encrypt(body, args.headers, certificates)
    msg = Mailer().compose(envelope, sender=args.sender, recipients=args.recipients,
                           subject=args.subject,
                           rehydrator=ContentTypeRehydrator.for_envelope(envelope))
    sys.stdout.write(msg.as_string())


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format=LOG_FORMAT)
    try:
        config = EncryptorConfig.from_args(args)
        if args.command == "pem-to-der":
            with args.pem_file as pem, args.der_file as der:
                der.write(pem_to_der(pem.read()))
        elif args.command == "serve":
            serve(Service(Encryptor(config=config)), args.bind)
        else:
            run_encrypt(args, Encryptor(config=config))
    except (SMIMEError, ValueError) as e:
        eprint(f"{type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
