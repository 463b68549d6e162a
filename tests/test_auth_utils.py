"""Tests for session authentication setup."""

from __future__ import annotations

from argparse import Namespace

import pytest
from requests.auth import HTTPBasicAuth

from auth_utils import AuthConfigError, Credentials, configure_authentication, load_headers_file


def args(**kw) -> Namespace:
    return Namespace(**kw)


class TestConfigureAuthentication:
    def test_bearer_token(self):
        sess = configure_authentication(args(token="abc"))
        assert sess.headers["Authorization"] == "Bearer abc"

    def test_bearer_prefix_not_doubled(self):
        sess = configure_authentication(args(token="Bearer abc"))
        assert sess.headers["Authorization"] == "Bearer abc"

    def test_basic(self):
        sess = configure_authentication(args(basic_auth="user:p:w"))
        assert isinstance(sess.auth, HTTPBasicAuth)
        assert (sess.auth.username, sess.auth.password) == ("user", "p:w")

    @pytest.mark.parametrize("kw", [
        {"basic_auth": "nocolon"},
        {"token": "t", "basic_auth": "u:p"},
        {"client_cert": "cert.pem"},
    ])
    def test_invalid_combinations(self, kw):
        with pytest.raises(AuthConfigError):
            configure_authentication(args(**kw))

    def test_api_key_and_insecure(self):
        sess = configure_authentication(args(apikey=" k ", apikey_header="X-Key", insecure=True))
        assert sess.headers["X-Key"] == "k"
        assert sess.verify is False

    def test_mtls(self):
        sess = configure_authentication(args(client_cert="c.pem", client_key="k.pem"))
        assert sess.cert == ("c.pem", "k.pem")

    def test_headers_file(self, tmp_path):
        path = tmp_path / "h.yml"
        path.write_text("X-Env: test\nX-Num: 3\n", encoding="utf-8")
        sess = configure_authentication(args(headers_file=str(path)))
        assert sess.headers["X-Env"] == "test"
        assert sess.headers["X-Num"] == "3"


class TestHeadersFile:
    def test_json(self, tmp_path):
        path = tmp_path / "h.json"
        path.write_text('{"A": "1", "B": null}', encoding="utf-8")
        assert load_headers_file(path) == {"A": "1"}

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "h.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(AuthConfigError):
            load_headers_file(path)

    def test_missing(self, tmp_path):
        with pytest.raises(AuthConfigError):
            load_headers_file(tmp_path / "nope.json")


class TestCredentials:
    def test_defaults(self):
        creds = Credentials.from_args(args())
        assert creds == Credentials()
        assert creds.session().verify is True

    def test_basic_parsed_once(self):
        creds = Credentials.from_args(args(basic_auth="u:"))
        assert creds.basic == ("u", "")
