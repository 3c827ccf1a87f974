"""
Client credential issuance.
A credential is (username, client_id, timestamp). The client secret is base64 of a bcrypt
hash over "username#client_id#timestamp"; only the triple is stored, never the secret.
"""
import base64
import binascii
import hashlib
import logging
import time
import uuid
from dataclasses import dataclass

import bcrypt
from sqlalchemy.orm import Session

from token_authority import store
from token_authority.models import Credential

logger = logging.getLogger(__name__)

AUTH_OK = "OK"
FAIL_IN_DB = "FAIL_IN_DB"


@dataclass
class CredentialResult:
    username: str
    status: str
    client_id: str | None = None
    client_secret: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == AUTH_OK

    def to_response(self) -> dict:
        if not self.ok:
            return {"username": self.username, "auth": self.status}
        return {
            "auth": self.status,
            "username": self.username,
            "CLIENT_ID": self.client_id,
            "CLIENT_SECRET": self.client_secret,
        }


def credential_plaintext(username: str, client_id: str, timestamp: int) -> bytes:
    """
    Material the secret is derived from. Pre-hashed with SHA-256 so bcrypt's
    72-byte input limit never cuts off the client id or timestamp.
    """
    raw = f"{username}#{client_id}#{timestamp}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest().encode("ascii")


def hash_secret(plaintext: bytes) -> str:
    """Salted bcrypt hash; a fresh salt on every call."""
    return bcrypt.hashpw(plaintext, bcrypt.gensalt()).decode("utf-8")


def check_secret(plaintext: bytes, secret: str) -> bool:
    """True if the base64 secret is a bcrypt hash of plaintext."""
    try:
        hashed = base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError):
        return False
    try:
        return bcrypt.checkpw(plaintext, hashed)
    except ValueError:
        # not a bcrypt hash
        return False


def issue_credentials(db: Session, username: str, *, clock=time.time) -> CredentialResult:
    """
    Generate a new client id and secret for username and persist them.
    An existing credential for the user is replaced in place, which supersedes its secret.
    """
    client_id = str(uuid.uuid4())
    timestamp = int(clock())
    secret = base64.b64encode(
        hash_secret(credential_plaintext(username, client_id, timestamp)).encode("utf-8")
    ).decode("ascii")

    record = {"client_id": client_id, "timestamp": timestamp}
    # row lock on the user's credential; concurrent first issues meet the unique username instead
    if store.find_by(db, Credential, "username", username, for_update=True):
        ok = store.update(db, Credential, record, "username", username)
    else:
        record["username"] = username
        ok = store.create(db, Credential, record)

    if not ok:
        logger.warning("Credential issue failed in store for username=%s", username)
        return CredentialResult(username=username, status=FAIL_IN_DB)
    logger.info("Issued credentials for username=%s client_id=%s", username, client_id)
    return CredentialResult(username=username, status=AUTH_OK, client_id=client_id, client_secret=secret)
