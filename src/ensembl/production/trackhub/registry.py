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
Track Hub Registry client.

Registers a published track hub in three calls:
1) GET  {server}/api/login     (HTTP basic auth) => auth token
2) POST {server}/api/trackhub  (User + Auth-Token headers, JSON payload)
3) GET  {server}/api/logout    (User + Auth-Token headers)

No retries and no timeouts beyond the requests defaults.
"""
import logging

import requests
from typing_extensions import NotRequired, TypedDict

from .models import TrackhubSubmission, is_blank

logger = logging.getLogger(__name__)

DEFAULT_SERVER = "https://www.trackhubregistry.org"
LOGIN_PATH = "/api/login"
TRACKHUB_PATH = "/api/trackhub"
LOGOUT_PATH = "/api/logout"


# Datamodel for track hub registration payloads
class TrackhubPayload(TypedDict):
    url: str
    type: str
    public: int
    assembliesNames: NotRequired[dict[str, str]]


class RegistryError(Exception):
    """Base class for registry session errors."""
    pass


class RegistryAuthError(RegistryError):
    """Login/logout rejected by the registry, or no auth token available."""

    def __init__(self, message: str, status_code: int | None = None, reason: str = ""):
        self.status_code = status_code
        self.reason = reason
        super().__init__(message)


class RegistrySubmitError(RegistryError):
    """Track hub submission not accepted (anything but 201 Created)."""

    def __init__(self, message: str, status_code: int, reason: str = "", body: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(message)


def api_url(server: str, path: str) -> str:
    return server.rstrip("/") + path


def auth_headers(user: str, token: str) -> dict[str, str]:
    return {"User": user, "Auth-Token": token}


def require_token(token: str | None, action: str) -> None:
    if is_blank(token):
        msg = f"Cannot {action} without an auth token, log in first."
        logger.error(msg)
        raise RegistryAuthError(msg)


def build_payload(submission: TrackhubSubmission) -> TrackhubPayload:
    """
    Build the JSON payload for a track hub submission.

    An empty assemblies mapping is left out of the payload (with a warning).
    """
    payload: TrackhubPayload = {
        "url": submission.url,
        "type": submission.post_type.value,
        "public": submission.search_type.value,
    }
    if submission.assemblies:
        payload["assembliesNames"] = dict(submission.assemblies)
    else:
        logger.warning("Unable to read assemblies, submitting without assembliesNames.")
    return payload


def login(server: str, user: str, password: str) -> str:
    """
    Log into the registry.

    Returns:
        The auth token issued by the registry

    Raises:
        RegistryAuthError: If the registry does not answer 200 with a token
    """
    logger.info("Attempting to log into the registry.")
    url = api_url(server, LOGIN_PATH)
    logger.info(f"Executing request GET {url}")
    response = requests.get(url, auth=(user, password))
    if response.status_code != requests.codes.ok:
        msg = f"Error when logging in, status code: {response.status_code}, reason: {response.reason}"
        logger.error(msg)
        raise RegistryAuthError(msg, response.status_code, response.reason)
    try:
        token = response.json()["auth_token"]
    except (ValueError, KeyError, TypeError) as e:
        msg = f"No auth token in login response: {e}"
        logger.error(msg)
        raise RegistryAuthError(msg, response.status_code, response.reason)
    logger.info("Successfully obtained auth token.")
    return token


def submit(server: str, token: str | None, user: str, submission: TrackhubSubmission) -> requests.Response:
    """
    Post a track hub to the registry.

    Returns:
        The registry response (201 Created)

    Raises:
        RegistryAuthError: If no auth token is given (nothing is sent)
        RegistrySubmitError: If the registry does not answer 201
    """
    require_token(token, "post a track hub")
    logger.info("Attempting to post track hub.")
    headers = auth_headers(user, token)
    payload = build_payload(submission)
    for name, value in headers.items():
        logger.debug(f"{name} : {value}")
    response = requests.post(api_url(server, TRACKHUB_PATH), headers=headers, json=payload)
    if response.status_code != requests.codes.created:
        msg = (
            f"Error when posting track hub to registry, status code: {response.status_code}, "
            f"reason: {response.reason}"
        )
        logger.error(msg)
        logger.error(f"Content: {response.text}")
        raise RegistrySubmitError(msg, response.status_code, response.reason, response.text)
    logger.info("Successfully posted track hub to registry.")
    logger.debug(f"Content: {response.text}")
    return response


def logout(server: str, token: str | None, user: str) -> None:
    """
    Log out of the registry, invalidating the auth token.

    Raises:
        RegistryAuthError: If no auth token is given, or the registry does not answer 200
    """
    require_token(token, "log out")
    logger.info("Attempting to log out")
    response = requests.get(api_url(server, LOGOUT_PATH), headers=auth_headers(user, token))
    if response.status_code != requests.codes.ok:
        msg = f"Error when logging out, status code: {response.status_code}, reason: {response.reason}"
        logger.error(msg)
        raise RegistryAuthError(msg, response.status_code, response.reason)
    logger.info("Successfully logged out.")


class RegistrySession:
    """
    Stateful wrapper around login/submit/logout.

    The auth token is kept between calls and dropped on logout. Calls
    must be made in order; submit() and logout() fail before any network
    traffic when there is no token.
    """

    def __init__(self, server: str, user: str, password: str, log: logging.Logger | None = None):
        self.server = server
        self.user = user
        self.password = password
        self.auth_token: str | None = None
        self.logger = log or logger

    def login(self) -> str:
        self.logger.info(f"Logging into {self.server} as {self.user}")
        self.auth_token = None
        self.auth_token = login(self.server, self.user, self.password)
        return self.auth_token

    def submit(self, submission: TrackhubSubmission) -> requests.Response:
        self.logger.info(f"Registering track hub {submission.url}")
        return submit(self.server, self.auth_token, self.user, submission)

    def logout(self) -> None:
        logout(self.server, self.auth_token, self.user)
        self.auth_token = None
        self.logger.info(f"Logged out of {self.server}")
