"""
Bearer token extraction from request headers, and the combined request check.
"""
import logging
import re
from collections.abc import Mapping

from token_authority.token_verifier import Classification, TokenVerifier

logger = logging.getLogger(__name__)

RESPONSE_OK = "OK"
TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"

_BEARER_RE = re.compile(r"^\s*Bearer(?P<token>.*)$", re.DOTALL)


def _authorization_header(headers: Mapping) -> str | None:
    value = headers.get("Authorization")
    if value is None:
        # plain dicts are case-sensitive; header names are not
        for name, candidate in headers.items():
            if name.lower() == "authorization":
                return candidate
    return value


def extract_bearer(headers: Mapping) -> str | None:
    """
    Token from "Authorization: Bearer <token>". The "Bearer" prefix is case-sensitive;
    whitespace before the token is ignored. None if the header is missing, uses another
    scheme, or carries no token.
    """
    value = _authorization_header(headers)
    if not value:
        return None
    match = _BEARER_RE.match(value)
    if not match:
        return None
    token = match.group("token").strip()
    return token or None


def check_request(headers: Mapping, verifier: TokenVerifier) -> dict:
    """
    {"response": "OK"} for a valid bearer token, {"response": "TOKEN_NOT_FOUND"} without one,
    otherwise {"token": "EXPIRED" | "INVALID"}. A signature failure is reported under
    "token" like every other rejection.
    """
    token = extract_bearer(headers)
    if token is None:
        return {"response": TOKEN_NOT_FOUND}
    result = verifier.parse_and_verify(token)
    if result.classification is Classification.VALID:
        return {"response": RESPONSE_OK}
    logger.info("Bearer token rejected: %s", result.classification.value)
    return {"token": result.classification.value}
