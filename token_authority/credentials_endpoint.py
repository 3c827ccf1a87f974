"""
Credential registration (POST /credentials) and claim assignment (PUT /credentials/{client_id}/claims).
"""
import logging

from fastapi import APIRouter, Depends, Form, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from token_authority.claims import CLAIMS_OK, set_claims, verify_client_id
from token_authority.credentials import issue_credentials
from token_authority.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter()


class ClaimsBody(BaseModel):
    claims: list[str]


@router.post("/credentials")
def create_credentials(username: str = Form(...), db: Session = Depends(get_db)):
    """Issue (or re-issue, replacing the previous) client id and secret for username."""
    username = username.strip()
    if not username:
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_request", "error_description": "username is required"},
        )
    return issue_credentials(db, username).to_response()


@router.put("/credentials/{client_id}/claims")
def replace_claims(client_id: str, body: ClaimsBody, db: Session = Depends(get_db)):
    """Replace the endpoint/method claims of a registered client id."""
    if not verify_client_id(db, client_id):
        raise HTTPException(
            status_code=404,
            detail={"error": "invalid_client", "error_description": "Unknown client"},
        )
    result = set_claims(db, client_id, body.claims)
    if result != CLAIMS_OK:
        logger.warning("Claim replacement for client_id=%s returned %s", client_id, result)
    return {"status": result}
