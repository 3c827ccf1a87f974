"""
Exceptions for failures that are not token classifications.
Classification outcomes (VALID / EXPIRED / INVALID) are values; see token_verifier.
"""


class TokenAuthorityError(Exception):
    """Base exception. ``code`` is the string surfaced to API callers."""

    code = "ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


class KeyMaterialError(TokenAuthorityError):
    """Key text, certificate or PKCS#12 bundle could not be parsed."""

    code = "KEY MATERIAL INVALID"


class KeyUnavailable(TokenAuthorityError):
    """A key required by the operation was never loaded."""

    code = "KEY IS MISSING"


class PrivateKeyMissing(KeyUnavailable):
    code = "PRIVATE KEY IS MISSING"


class PublicKeyMissing(KeyUnavailable):
    code = "PUBLIC KEY IS MISSING"


class NoEndpoints(TokenAuthorityError):
    """Client has no authorized endpoint/method pairs; refusing to mint an empty token."""

    code = "NO ENDPOINTS"
