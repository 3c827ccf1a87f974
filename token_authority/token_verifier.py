"""
Access token verification.

Each step is a gate: compact parse with RS256 signature check (PyJWT, RS256 only),
issuer tag recovery and comparison, then exp / iat / nbf. Failed claims are overwritten
with a sentinel (EXPIRED or INVALID); an expired token classifies as EXPIRED even when
other claims are also bad.
"""
import logging
import math
import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum

import jwt

from token_authority.keys import KeyMaterial, recover_issuer

logger = logging.getLogger(__name__)


# Signature and alg only; the temporal and issuer claims are checked by check_claims
_SIGNATURE_ONLY = {
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_iss": False,
    "verify_aud": False,
    "verify_sub": False,
    "verify_jti": False,
}


class Classification(str, Enum):
    VALID = "VALID"
    EXPIRED = "EXPIRED"
    INVALID = "INVALID"


# Claims of the last token accepted in the current context (request)
_active_claims: ContextVar[dict | None] = ContextVar("active_claims", default=None)


def get_claims() -> dict:
    """Validated claim mapping of the most recent VALID token in this context, or {}."""
    claims = _active_claims.get()
    return dict(claims) if claims else {}


@dataclass
class VerificationResult:
    classification: Classification
    claims: dict | None = None
    failed: dict = field(default_factory=dict)  # claim name -> sentinel

    @property
    def valid(self) -> bool:
        return self.classification is Classification.VALID

    @property
    def endpoints(self) -> list[str]:
        return endpoints_of(self.claims or {})


def endpoints_of(claims: dict) -> list[str]:
    """Authorized "endpoint/method" entries of a claim mapping (its numeric keys), in index order."""
    indexed = [(int(k), v) for k, v in claims.items() if k.isdigit()]
    return [v for _, v in sorted(indexed)]


def _numeric(value) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    # NaN compares False both ways and would pass every window check
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def classify(failed: dict) -> Classification:
    """EXPIRED takes priority over INVALID; no failures is VALID."""
    if Classification.EXPIRED in failed.values():
        return Classification.EXPIRED
    if failed:
        return Classification.INVALID
    return Classification.VALID


class TokenVerifier:
    def __init__(self, key_material: KeyMaterial, issuer: str, *, leeway: int = 0, clock=time.time):
        self.key_material = key_material
        self.issuer = issuer
        self.leeway = leeway
        self.clock = clock

    def parse_and_verify(self, token: str) -> VerificationResult:
        """
        Classify a compact-serialized token. Never raises: anything unexpected while
        parsing or verifying is INVALID. A VALID token's claims become the active claim set.
        """
        try:
            result = self._parse_and_verify(token)
        except Exception as e:
            logger.debug("Token verification failed: %s", e)
            return VerificationResult(Classification.INVALID)
        if result.valid:
            _active_claims.set(result.claims)
        logger.debug("Token classified %s", result.classification.value)
        return result

    def _parse_and_verify(self, token: str) -> VerificationResult:
        try:
            claims = jwt.decode(
                token,
                self.key_material.require_public(),
                algorithms=["RS256"],
                options=_SIGNATURE_ONLY,
            )
        except jwt.InvalidTokenError as e:
            logger.debug("Token rejected before claim checks: %s", e)
            return VerificationResult(Classification.INVALID)

        claims, failed = self.check_claims(claims)
        return VerificationResult(classify(failed), claims=claims, failed=failed)

    def check_claims(self, claims: dict) -> tuple[dict, dict]:
        """
        Validate iss, exp, iat, nbf. Returns (claims, failed): claims with each of the four
        replaced by its validated value (iss by the recovered issuer) or a sentinel, and
        the failed claim names mapped to their sentinel.
        """
        now = self.clock()
        claims = dict(claims)
        failed = {}

        tag = claims.get("iss")
        issuer = recover_issuer(self.key_material, tag) if isinstance(tag, str) else None
        if issuer is not None and issuer == self.issuer:
            claims["iss"] = issuer
        else:
            failed["iss"] = Classification.INVALID

        exp = _numeric(claims.get("exp"))
        if exp is None or not now < exp:
            failed["exp"] = Classification.EXPIRED

        iat = _numeric(claims.get("iat"))
        if iat is None or iat > now + self.leeway:
            failed["iat"] = Classification.INVALID

        nbf = _numeric(claims.get("nbf"))
        if nbf is None or now + self.leeway < nbf:
            failed["nbf"] = Classification.INVALID

        for name, sentinel in failed.items():
            claims[name] = sentinel.value
        return claims, failed
