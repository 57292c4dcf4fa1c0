from __future__ import annotations

import pytest

from sf_gateway.app.auth import AuthPolicy, check_request
from sf_gateway.app.failures import FailureKind
from sf_gateway.app.settings import Settings

_ENFORCED = AuthPolicy(require_auth=True, configured_secret="abc")


def _envelope(method: str) -> dict[str, object]:
    return {"jsonrpc": "2.0", "method": method, "id": 1}


def test_auth_disabled_passes_everything() -> None:
    policy = AuthPolicy(require_auth=False, configured_secret="abc")
    assert check_request(policy, _envelope("tools/call"), {}, client_ip="127.0.0.1") is None


def test_missing_configured_secret_passes_with_warning() -> None:
    policy = AuthPolicy(require_auth=True, configured_secret="")
    assert check_request(policy, _envelope("tools/call"), {}, client_ip="127.0.0.1") is None


@pytest.mark.parametrize("method", ["initialize", "tools/list", "unknown/method"])
def test_only_tools_call_is_checked(method: str) -> None:
    assert check_request(_ENFORCED, _envelope(method), {}, client_ip=None) is None


def test_tools_call_without_header_is_missing_credential() -> None:
    failure = check_request(_ENFORCED, _envelope("tools/call"), {}, client_ip="10.0.0.1")
    assert failure is not None
    assert failure.kind is FailureKind.MISSING_CREDENTIAL
    assert failure.code == -32001
    assert failure.http_status == 401


def test_tools_call_with_wrong_secret_is_invalid_credential() -> None:
    failure = check_request(_ENFORCED, _envelope("tools/call"), {"x-secret-key": "ABC"}, client_ip="10.0.0.1")
    assert failure is not None
    assert failure.kind is FailureKind.INVALID_CREDENTIAL
    assert failure.to_error()["data"] == {"reason": "invalid_credential"}


def test_tools_call_with_matching_secret_passes() -> None:
    assert check_request(_ENFORCED, _envelope("tools/call"), {"x-secret-key": "abc"}, client_ip=None) is None


def test_non_object_envelope_is_not_checked() -> None:
    assert check_request(_ENFORCED, ["tools/call"], {}, client_ip=None) is None


def test_policy_from_settings() -> None:
    policy = AuthPolicy.from_settings(Settings(_env_file=None, secret_key="s3", require_auth=False))
    assert policy == AuthPolicy(require_auth=False, configured_secret="s3")
