"""
Bearer token check (GET /check) and claim inspection (GET /claims).
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from token_authority.auth import get_token_verifier, require_claims
from token_authority.bearer import check_request
from token_authority.token_verifier import TokenVerifier

router = APIRouter()


@router.get("/check")
def check(request: Request, verifier: Annotated[TokenVerifier, Depends(get_token_verifier)]):
    """{"response": "OK"}, {"response": "TOKEN_NOT_FOUND"} or {"token": "EXPIRED" | "INVALID"}."""
    return check_request(request.headers, verifier)


@router.get("/claims")
def claims(validated: Annotated[dict, Depends(require_claims)]):
    """Validated claims of the presented token (iss replaced by the recovered issuer)."""
    return validated
