########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import requests
import yaml
from requests.auth import HTTPBasicAuth

logger = logging.getLogger(__name__)


class AuthConfigError(Exception):
    pass


# ----------------------- Funtion load_headers_file ----------------------------#
def load_headers_file(path: Union[str, Path]) -> Dict[str, str]:
    """Extra headers sent with every request, from a JSON or YAML mapping."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise AuthConfigError(f"Headers file not readable: {path}: {e}") from e
    try:
        raw = json.loads(text)
    except json.JSONDecodeError:
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise AuthConfigError(f"Headers file is not JSON/YAML: {e}") from e
    if not isinstance(raw, dict):
        raise AuthConfigError("Headers file must contain a name: value mapping")
    return {str(k): str(v) for k, v in raw.items() if v is not None}


@dataclass(frozen=True)
class Credentials:
    """Validated credential options taken from the command line."""

    bearer: Optional[str] = None
    basic: Optional[Tuple[str, str]] = None
    api_key: Optional[Tuple[str, str]] = None
    client_cert: Optional[Tuple[str, str]] = None
    verify_tls: bool = True
    headers_file: Optional[str] = None

    # ----------------------- Funtion from_args ----------------------------#
    @classmethod
    def from_args(cls, args) -> "Credentials":
        token = (getattr(args, "token", None) or "").strip()
        basic_raw = getattr(args, "basic_auth", None)
        if token and basic_raw:
            raise AuthConfigError("Use either --token or --basic-auth, not both")

        basic = None
        if basic_raw:
            user, sep, pwd = basic_raw.partition(":")
            if not sep:
                raise AuthConfigError("--basic-auth requires user:password")
            basic = (user, pwd)

        cert, key = getattr(args, "client_cert", None), getattr(args, "client_key", None)
        if cert and not key:
            raise AuthConfigError("--client-cert requires --client-key")

        api_key = None
        key_value = (getattr(args, "apikey", None) or "").strip()
        if key_value:
            api_key = (getattr(args, "apikey_header", None) or "X-API-Key", key_value)

        return cls(
            bearer=(token if token.startswith("Bearer ") else f"Bearer {token}") if token else None,
            basic=basic,
            api_key=api_key,
            client_cert=(cert, key) if cert else None,
            verify_tls=not getattr(args, "insecure", False),
            headers_file=getattr(args, "headers_file", None),
        )

    # ----------------------- Funtion session ----------------------------#
    def session(self) -> requests.Session:
        sess = requests.Session()
        sess.verify = self.verify_tls
        if not self.verify_tls:
            logger.warning("TLS verification disabled (--insecure); fuzz test systems only.")
        if self.api_key:
            sess.headers[self.api_key[0]] = self.api_key[1]
            logger.debug("API key sent in header %s", self.api_key[0])
        if self.client_cert:
            sess.cert = self.client_cert
            logger.debug("Client certificate configured for mTLS")
        if self.bearer:
            sess.headers["Authorization"] = self.bearer
            logger.info("Using bearer token authentication.")
        elif self.basic:
            sess.auth = HTTPBasicAuth(*self.basic)
            logger.info("Using basic authentication as %s.", self.basic[0])
        if self.headers_file:
            extra = load_headers_file(self.headers_file)
            sess.headers.update(extra)
            logger.debug("%d extra headers loaded from %s", len(extra), self.headers_file)
        return sess


# ----------------------- Funtion configure_authentication ----------------------------#
def configure_authentication(args) -> requests.Session:
    """Build the requests session every fuzz case is sent through."""
    return Credentials.from_args(args).session()
