"""
Token endpoint (POST /token). Client credentials grant: client_id + client_secret -> signed access token.
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from sqlalchemy.orm import Session

from token_authority.auth import get_token_issuer
from token_authority.client_auth import get_client_credentials_from_request
from token_authority.database import get_db
from token_authority.errors import KeyUnavailable, NoEndpoints
from token_authority.token_issuer import TokenIssuer

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/token")
def token(
    request: Request,
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    client_id: str | None = Form(None),
    client_secret: str | None = Form(None),
    db: Session = Depends(get_db),
):
    """
    Returns {"validation": "OK", "token": ...} or {"validation": "INVALID"} for bad credentials.
    """
    cid, secret = get_client_credentials_from_request(request, client_id, client_secret)
    if not cid:
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_request", "error_description": "client_id is required"},
        )
    try:
        return issuer.token_response(db, cid, secret)
    except NoEndpoints as e:
        logger.warning("Token refused for client_id=%s: %s", cid, e)
        raise HTTPException(
            status_code=422,
            detail={"token": e.code},
        )
    except KeyUnavailable as e:
        logger.error("Token issuance unavailable: %s", e.code)
        raise HTTPException(
            status_code=500,
            detail={"error": "server_error", "error_description": e.code},
        )
