"""
Authorization claims: the endpoint/method pairs a client id may call.
Claims are written as "endpoint/method" strings, split at the last "/".
"""
import logging

from sqlalchemy.orm import Session

from token_authority import store
from token_authority.models import Credential, Endpoint

logger = logging.getLogger(__name__)

CLAIMS_OK = "OK"
DELETE_CLAIM_FAIL = "DELETE CLAIM FAIL"
CREATE_CLAIM_FAIL = "CREATE CLAIM FAIL"


def parse_claim(claim: str) -> tuple[str, str]:
    """
    "orders/items/GET" -> ("orders/items", "GET").
    A claim without "/" has an empty endpoint.
    """
    endpoint, _, method = claim.rpartition("/")
    return endpoint, method


def set_claims(db: Session, client_id: str, claims: list[str]) -> str:
    """
    Replace the claim set for client_id. Delete and inserts are staged in one
    transaction and committed together; on any failure the session is rolled back
    and the previous claim set is left as it was.

    The owning credential row is locked first, so two replacements for the same
    client id run one after the other instead of merging their sets.
    """
    store.find_by(db, Credential, "client_id", client_id, for_update=True)
    existing = store.find_by(db, Endpoint, "client_id", client_id)
    if existing and not store.delete(db, Endpoint, "client_id", client_id, commit=False):
        db.rollback()
        logger.warning("Deleting claims failed for client_id=%s", client_id)
        return DELETE_CLAIM_FAIL

    for claim in claims:
        endpoint, method = parse_claim(claim)
        record = {"client_id": client_id, "endpoint": endpoint, "method": method}
        if not store.create(db, Endpoint, record, commit=False):
            db.rollback()
            logger.warning("Creating claim %r failed for client_id=%s; claim set unchanged", claim, client_id)
            return CREATE_CLAIM_FAIL

    db.commit()
    logger.info("Set %d claims for client_id=%s", len(claims), client_id)
    return CLAIMS_OK


def load_claims(db: Session, client_id: str) -> list[str]:
    """Claim strings for client_id in storage order."""
    return [row.claim for row in store.find_by(db, Endpoint, "client_id", client_id)]


def verify_client_id(db: Session, client_id: str) -> bool:
    return len(store.find_by(db, Credential, "client_id", client_id)) > 0
