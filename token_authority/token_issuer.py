"""
Access token issuance for verified client credentials.

Payload: iat, nbf, exp, iss (RSA-tagged issuer, base64) and one entry per authorized
"endpoint/method" pair keyed by its storage index ("0", "1", ...). Signed RS256,
compact serialization, header {"alg": "RS256", "typ": "JWT"}.
"""
import logging
import time

import jwt
from sqlalchemy.orm import Session

from token_authority import store
from token_authority.claims import load_claims
from token_authority.credentials import check_secret, credential_plaintext
from token_authority.errors import NoEndpoints
from token_authority.keys import KeyMaterial, issuer_tag
from token_authority.models import Credential

logger = logging.getLogger(__name__)

VALIDATION_OK = "OK"
VALIDATION_INVALID = "INVALID"


class TokenIssuer:
    def __init__(self, key_material: KeyMaterial, issuer: str, ttl_seconds: int, *, clock=time.time):
        self.key_material = key_material
        self.issuer = issuer
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def verify_credential(self, db: Session, client_id: str, secret: str | None) -> bool:
        """
        Re-derive the credential plaintext from the stored record and check the supplied
        secret against it. A secret from a superseded credential fails because the stored
        client id and timestamp have changed.
        """
        if not client_id or not secret:
            return False
        rows = store.find_by(db, Credential, "client_id", client_id)
        if not rows:
            return False
        record = rows[0]
        return check_secret(credential_plaintext(record.username, client_id, record.timestamp), secret)

    def issue_token(self, db: Session, client_id: str) -> str:
        """
        Build and sign a token for client_id. Caller must have verified the credential.
        Raises PrivateKeyMissing without a private key, NoEndpoints if the client has no claims.
        """
        private_key = self.key_material.require_private()
        now = int(self.clock())
        payload = {
            "iat": now,
            "nbf": now,
            "exp": now + self.ttl_seconds,
            "iss": issuer_tag(self.key_material, self.issuer),
        }

        claims = load_claims(db, client_id)
        if not claims:
            raise NoEndpoints(f"No endpoints authorized for client {client_id}")
        for index, claim in enumerate(claims):
            payload[str(index)] = claim

        token = jwt.encode(
            payload,
            private_key,
            algorithm="RS256",
            headers={"typ": "JWT"},
        )
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        logger.info("Issued token for client_id=%s with %d claims (exp=%s)", client_id, len(claims), payload["exp"])
        return token

    def token_response(self, db: Session, client_id: str, secret: str | None) -> dict:
        """Verify credentials, then issue. Invalid credentials short-circuit to validation INVALID."""
        if not self.verify_credential(db, client_id, secret):
            logger.info("Token request rejected: invalid credentials for client_id=%s", client_id)
            return {"validation": VALIDATION_INVALID}
        return {"validation": VALIDATION_OK, "token": self.issue_token(db, client_id)}
