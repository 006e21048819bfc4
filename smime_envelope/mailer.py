#! /usr/bin/env python
# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
# Copyright © 2023 Fabian Ising
#
# Distributed under terms of the MIT license.

"""
Turns an encrypted envelope into a mail message ready for SMTP.
"""
import logging
import smtplib
from email.message import Message
from email.parser import HeaderParser
from email.utils import formatdate, make_msgid

from .rehydrator import CONTENT_TYPE_FILTER

LOGGER = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/pkcs7-mime"


def base_media_type(value):
    return value.split(";", 1)[0].strip()


def envelope_media_type(envelope):
    parsed = HeaderParser().parsestr(envelope.headers + "\n\n")
    value = parsed.get("Content-Type")
    if value is None:
        return DEFAULT_CONTENT_TYPE
    return base_media_type(value)


class Mailer(object):
    """Builds outgoing messages the way a plain mail layer does.

    The Content-Type is cut down to its base media type and then passed
    through the ``mail_content_type`` filter of the registry, or through an
    explicit rehydrator, which restores the PKCS#7 parameters.
    """

    def __init__(self, registry=None):
        self.registry = registry

    def content_type(self, base, rehydrator=None):
        if rehydrator is not None:
            return rehydrator(base)
        if self.registry is not None:
            return self.registry.apply_filters(CONTENT_TYPE_FILTER, base)
        return base

    def compose(self, envelope, sender=None, recipients=None, subject=None, rehydrator=None):
        parsed = HeaderParser().parsestr(envelope.headers + "\n\n")
        msg = Message()
        base = DEFAULT_CONTENT_TYPE
        for name, value in parsed.items():
            if name.lower() == "content-type":
                base = base_media_type(value)
                continue
            msg[name] = value
        for name, value in (("From", sender), ("Subject", subject)):
            if value is not None:
                del msg[name]
                msg[name] = value
        if recipients:
            del msg["To"]
            msg["To"] = ", ".join(recipients)
        if "Date" not in msg:
            msg["Date"] = formatdate(localtime=True)
        if "Message-ID" not in msg:
            msg["Message-ID"] = make_msgid()
        msg["Content-Type"] = self.content_type(base, rehydrator)
        msg.set_payload(envelope.message)
        return msg

    def send(self, msg, host="localhost", port=25):
        LOGGER.info("Sending %s via %s:%d", msg["Message-ID"], host, port)
        with smtplib.SMTP(host, port) as server:
            server.send_message(msg)
