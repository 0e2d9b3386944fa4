# See the NOTICE file distributed with this work for additional information
#   regarding copyright ownership.
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#       http://www.apache.org/licenses/LICENSE-2.0
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""
Unit tests for the registry module. requests.get/post are replaced by fakes,
no network traffic is made.
"""

import json
import logging

import pytest
import requests

from ensembl.production.trackhub import registry
from ensembl.production.trackhub.models import PostType, SearchType, TrackhubSubmission
from ensembl.production.trackhub.registry import (
    RegistryAuthError,
    RegistrySession,
    RegistrySubmitError,
    build_payload,
    login,
    logout,
    submit,
)

# ── Fixtures ──────────────────────────────────────────────────────────────────

SERVER = "https://registry.example.org"
USER = "pride-test"
PASSWORD = "secret"
TOKEN = "abc123"


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int, body=None, reason: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.text = body if isinstance(body, str) else json.dumps(body or {})

    def json(self):
        return json.loads(self.text)


class FakeRegistry:
    """Records calls and answers them with queued responses."""

    def __init__(self, *responses: FakeResponse):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self.responses.pop(0)

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        return self.responses.pop(0)


@pytest.fixture
def fake_registry(monkeypatch):
    def install(*responses: FakeResponse) -> FakeRegistry:
        fake = FakeRegistry(*responses)
        monkeypatch.setattr(registry.requests, "get", fake.get)
        monkeypatch.setattr(registry.requests, "post", fake.post)
        return fake
    return install


@pytest.fixture
def submission() -> TrackhubSubmission:
    return TrackhubSubmission(
        url="https://example.org/Homo_sapiens/hub.txt",
        post_type=PostType.PROTEOMICS,
        search_type=SearchType.PUBLIC,
        assemblies={"GRCh38": "GCA_000001405.15"},
    )


# ── build_payload ─────────────────────────────────────────────────────────────

class TestBuildPayload:
    def test_full_payload(self, submission):
        assert build_payload(submission) == {
            "url": "https://example.org/Homo_sapiens/hub.txt",
            "type": "PROTEOMICS",
            "public": 1,
            "assembliesNames": {"GRCh38": "GCA_000001405.15"},
        }

    def test_private_hub(self):
        payload = build_payload(TrackhubSubmission(url="u", search_type=SearchType.PRIVATE, assemblies={"a": "b"}))
        assert payload["public"] == 0

    def test_empty_assemblies_omitted_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            payload = build_payload(TrackhubSubmission(url="u"))
        assert "assembliesNames" not in payload
        assert "Unable to read assemblies" in caplog.text


# ── login ─────────────────────────────────────────────────────────────────────

class TestLogin:
    def test_returns_token(self, fake_registry):
        fake = fake_registry(FakeResponse(200, {"auth_token": TOKEN}))
        assert login(SERVER, USER, PASSWORD) == TOKEN
        method, url, kwargs = fake.calls[0]
        assert (method, url) == ("GET", f"{SERVER}/api/login")
        assert kwargs["auth"] == (USER, PASSWORD)

    def test_trailing_slash_in_server(self, fake_registry):
        fake = fake_registry(FakeResponse(200, {"auth_token": TOKEN}))
        login(SERVER + "/", USER, PASSWORD)
        assert fake.calls[0][1] == f"{SERVER}/api/login"

    def test_forbidden_raises_auth_error(self, fake_registry):
        fake_registry(FakeResponse(403, {"error": "nope"}, reason="Forbidden"))
        with pytest.raises(RegistryAuthError) as excinfo:
            login(SERVER, USER, PASSWORD)
        assert excinfo.value.status_code == 403
        assert excinfo.value.reason == "Forbidden"

    def test_missing_token_raises_auth_error(self, fake_registry):
        fake_registry(FakeResponse(200, {"something": "else"}))
        with pytest.raises(RegistryAuthError, match="No auth token"):
            login(SERVER, USER, PASSWORD)

    def test_non_json_body_raises_auth_error(self, fake_registry):
        fake_registry(FakeResponse(200, "<html>maintenance</html>"))
        with pytest.raises(RegistryAuthError):
            login(SERVER, USER, PASSWORD)


# ── submit ────────────────────────────────────────────────────────────────────

class TestSubmit:
    def test_created_succeeds(self, fake_registry, submission):
        fake = fake_registry(FakeResponse(201, {"link": "http://genome.ucsc.edu/..."}))
        response = submit(SERVER, TOKEN, USER, submission)
        assert response.status_code == 201
        method, url, kwargs = fake.calls[0]
        assert (method, url) == ("POST", f"{SERVER}/api/trackhub")
        assert kwargs["headers"] == {"User": USER, "Auth-Token": TOKEN}
        assert kwargs["json"]["assembliesNames"] == {"GRCh38": "GCA_000001405.15"}

    def test_empty_assemblies_still_submitted(self, fake_registry):
        fake = fake_registry(FakeResponse(201, {}))
        submit(SERVER, TOKEN, USER, TrackhubSubmission(url="https://example.org/hub.txt"))
        assert "assembliesNames" not in fake.calls[0][2]["json"]

    @pytest.mark.parametrize("status", [200, 202, 400, 500])
    def test_anything_but_created_raises(self, fake_registry, submission, status):
        fake_registry(FakeResponse(status, "bad hub", reason="Nope"))
        with pytest.raises(RegistrySubmitError) as excinfo:
            submit(SERVER, TOKEN, USER, submission)
        assert excinfo.value.status_code == status
        assert excinfo.value.reason == "Nope"
        assert excinfo.value.body == "bad hub"

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token_rejected_before_request(self, fake_registry, submission, token):
        fake = fake_registry()
        with pytest.raises(RegistryAuthError, match="log in first"):
            submit(SERVER, token, USER, submission)
        assert fake.calls == []


# ── logout ────────────────────────────────────────────────────────────────────

class TestLogout:
    def test_ok_succeeds(self, fake_registry):
        fake = fake_registry(FakeResponse(200, {}))
        logout(SERVER, TOKEN, USER)
        method, url, kwargs = fake.calls[0]
        assert (method, url) == ("GET", f"{SERVER}/api/logout")
        assert kwargs["headers"] == {"User": USER, "Auth-Token": TOKEN}

    def test_error_raises_auth_error(self, fake_registry):
        fake_registry(FakeResponse(401, {}, reason="Unauthorized"))
        with pytest.raises(RegistryAuthError) as excinfo:
            logout(SERVER, TOKEN, USER)
        assert excinfo.value.status_code == 401

    def test_missing_token_rejected_before_request(self, fake_registry):
        fake = fake_registry()
        with pytest.raises(RegistryAuthError):
            logout(SERVER, None, USER)
        assert fake.calls == []


# ── RegistrySession ───────────────────────────────────────────────────────────

class TestRegistrySession:
    def test_full_session(self, fake_registry, submission):
        fake = fake_registry(
            FakeResponse(200, {"auth_token": TOKEN}),
            FakeResponse(201, {}),
            FakeResponse(200, {}),
        )
        session = RegistrySession(SERVER, USER, PASSWORD)
        assert session.login() == TOKEN
        session.submit(submission)
        session.logout()
        assert session.auth_token is None
        assert [(m, u) for m, u, _ in fake.calls] == [
            ("GET", f"{SERVER}/api/login"),
            ("POST", f"{SERVER}/api/trackhub"),
            ("GET", f"{SERVER}/api/logout"),
        ]

    def test_failed_login_stores_no_token(self, fake_registry, submission):
        fake = fake_registry(FakeResponse(403, {}, reason="Forbidden"))
        session = RegistrySession(SERVER, USER, PASSWORD)
        with pytest.raises(RegistryAuthError) as excinfo:
            session.login()
        assert excinfo.value.status_code == 403
        assert session.auth_token is None
        with pytest.raises(RegistryAuthError):
            session.submit(submission)
        assert len(fake.calls) == 1

    def test_submit_failure_keeps_token(self, fake_registry, submission):
        fake_registry(FakeResponse(200, {"auth_token": TOKEN}), FakeResponse(500, "boom"))
        session = RegistrySession(SERVER, USER, PASSWORD)
        session.login()
        with pytest.raises(RegistrySubmitError):
            session.submit(submission)
        assert session.auth_token == TOKEN

    def test_transport_errors_propagate(self, monkeypatch):
        def unreachable(url, **kwargs):
            raise requests.exceptions.ConnectionError("unreachable")
        monkeypatch.setattr(registry.requests, "get", unreachable)
        with pytest.raises(requests.exceptions.ConnectionError):
            RegistrySession(SERVER, USER, PASSWORD).login()
