#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""
Header clean-up before encryption and header/body split afterwards.
"""
import re

from .exceptions import MalformedEnvelope

CONTENT_TYPE_MARKER = "content-type:"
PKCS7_CONTENT_TYPE = re.compile(
    r"^Content-Type:[ \t]*application/(?:x-)?pkcs7-mime(.*(?:\r?\n[ \t].*)*)",
    re.IGNORECASE | re.MULTILINE)
BLANK_LINE = re.compile(r"\r?\n\r?\n")


def filter_header(line):
    return bool(line) and CONTENT_TYPE_MARKER not in line.lower()


def split_headers(headers):
    if isinstance(headers, str):
        return [line.rstrip("\r") for line in headers.split("\n")]
    return list(headers)


def normalize_headers(headers):
    # The engine writes its own Content-Type; a second one breaks the mail layer.
    # Folded continuation lines of a dropped header go with it.
    kept = []
    dropping = False
    for line in split_headers(headers):
        if dropping and line[:1] in (" ", "\t"):
            continue
        dropping = bool(line) and not filter_header(line)
        if filter_header(line):
            kept.append(line)
    return kept


def split_envelope(raw):
    match = BLANK_LINE.search(raw)
    if match is None:
        raise MalformedEnvelope("engine output has no header/body boundary")
    headers = raw[:match.start()]
    message = raw[match.end():]
    if not message.strip():
        raise MalformedEnvelope("engine output has an empty body")
    return headers, message


def media_type_parameters(headers):
    """Returns the parameter tail of a PKCS#7 Content-Type header, or None.

    For ``Content-Type: application/pkcs7-mime; smime-type=enveloped-data``
    that is ``; smime-type=enveloped-data``. Folded lines are kept as-is.
    """
    match = PKCS7_CONTENT_TYPE.search(headers)
    if match is None:
        return None
    return match.group(1).rstrip("\r")
