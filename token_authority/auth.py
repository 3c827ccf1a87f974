"""
FastAPI dependencies: the process token issuer/verifier, and bearer-token guards for
routes that enforce the endpoint/method allow-list carried in the token.
"""
import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from token_authority.bearer import extract_bearer
from token_authority.config import CLOCK_SKEW_SECONDS, ISSUER, TOKEN_TTL_SECONDS
from token_authority.keys import get_key_material
from token_authority.token_issuer import TokenIssuer
from token_authority.token_verifier import Classification, TokenVerifier, endpoints_of

logger = logging.getLogger(__name__)


def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(get_key_material(), ISSUER, TOKEN_TTL_SECONDS)


def get_token_verifier() -> TokenVerifier:
    return TokenVerifier(get_key_material(), ISSUER, leeway=CLOCK_SKEW_SECONDS)


def get_bearer_token(request: Request) -> str:
    """Extract Bearer token from Authorization header. Raises 401 if missing or not Bearer."""
    token = extract_bearer(request.headers)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"response": "TOKEN_NOT_FOUND"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def require_claims(
    token: Annotated[str, Depends(get_bearer_token)],
    verifier: Annotated[TokenVerifier, Depends(get_token_verifier)],
) -> dict:
    """Dependency: valid Bearer token -> validated claims. 401 with the classification otherwise."""
    result = verifier.parse_and_verify(token)
    if result.classification is not Classification.VALID:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"token": result.classification.value},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return result.claims


def require_endpoint(endpoint: str, method: str):
    """Dependency factory: require endpoint/method in the token's claim set."""
    required = f"{endpoint}/{method}"

    def _check(claims: Annotated[dict, Depends(require_claims)]) -> dict:
        if required not in endpoints_of(claims):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "insufficient_claims",
                    "error_description": f"Claim '{required}' required",
                },
            )
        return claims

    return Depends(_check)
