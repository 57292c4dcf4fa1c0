from __future__ import annotations

import dataclasses

import pytest

from sf_gateway.app.credentials import (
    AUTH_MODE_USER_PASSWORD,
    DEFAULT_LOGIN_URL,
    Credentials,
    extract_credentials,
)


def test_extract_credentials_reads_every_salesforce_header() -> None:
    credentials = extract_credentials(
        {
            "x-salesforce-username": "admin@example.com",
            "x-salesforce-password": "pw",
            "x-salesforce-token": "tok",
            "x-salesforce-instance-url": "https://test.salesforce.com",
        }
    )
    assert credentials.username == "admin@example.com"
    assert credentials.password == "pw"
    assert credentials.token == "tok"
    assert credentials.login_url == "https://test.salesforce.com"


def test_extract_credentials_defaults_optional_fields() -> None:
    credentials = extract_credentials({})
    assert credentials.username is None
    assert credentials.password is None
    assert credentials.token is None
    assert credentials.login_url == DEFAULT_LOGIN_URL


def test_extract_credentials_treats_empty_header_as_absent() -> None:
    credentials = extract_credentials({"x-salesforce-token": "", "x-salesforce-instance-url": ""})
    assert credentials.token is None
    assert credentials.login_url == DEFAULT_LOGIN_URL


def test_auth_mode_is_fixed_and_not_read_from_headers() -> None:
    credentials = extract_credentials({"x-salesforce-auth-mode": "OAuth_2.0"})
    assert credentials.auth_mode == AUTH_MODE_USER_PASSWORD
    with pytest.raises(TypeError):
        Credentials(username="u", auth_mode="OAuth_2.0")  # type: ignore[call-arg]


def test_credentials_repr_hides_secrets() -> None:
    credentials = Credentials(username="admin", password="hunter2", token="sekret")
    rendered = repr(credentials)
    assert "admin" in rendered
    assert "hunter2" not in rendered
    assert "sekret" not in rendered


def test_credentials_are_immutable() -> None:
    credentials = Credentials(username="admin")
    with pytest.raises(dataclasses.FrozenInstanceError):
        credentials.username = "other"  # type: ignore[misc]
