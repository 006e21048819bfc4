#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""
Encryptor settings, shared by the command line and the service.
"""
from dataclasses import dataclass
from typing import Optional

ENGINES = ("cryptography", "openssl")
DEFAULT_TIMEOUT = 30.0
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


@dataclass
class EncryptorConfig:
    engine: str = "cryptography"
    openssl_binary: str = "openssl"
    timeout: float = DEFAULT_TIMEOUT
    allow_legacy_cipher: bool = False
    tmpdir: Optional[str] = None

    def __post_init__(self):
        if self.engine not in ENGINES:
            raise ValueError(f"engine must be one of {', '.join(ENGINES)}, not {self.engine!r}")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @classmethod
    def from_args(cls, args):
        return cls(engine=args.engine,
                   openssl_binary=args.openssl,
                   timeout=args.timeout,
                   allow_legacy_cipher=args.allow_legacy_cipher,
                   tmpdir=args.tmpdir)


def add_arguments(parser):
    parser.add_argument("--engine", choices=ENGINES, default="cryptography",
                        help="PKCS#7 engine to encrypt with.")
    parser.add_argument("--openssl", metavar="path", default="openssl",
                        help="openssl binary for the openssl engine.")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT,
                        help="Seconds to wait for the openssl engine.")
    parser.add_argument("--allow-legacy-cipher", action="store_true",
                        help="Fall back to 3DES when AES-256-CBC is unavailable.")
    parser.add_argument("--tmpdir", metavar="dir", default=None,
                        help="Directory for scratch files (default: system temp dir).")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log scratch file and engine activity.")
    return parser
