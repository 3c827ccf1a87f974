"""
Token authority service.
Client credential registration, endpoint claims, token issuance and bearer token checks.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from token_authority.check_endpoint import router as check_router
from token_authority.credentials_endpoint import router as credentials_router
from token_authority.database import init_db
from token_authority.keys import get_key_material
from token_authority.token_endpoint import router as token_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and load key material once on startup."""
    init_db()
    material = get_key_material()
    logger.info("Key material loaded (private key: %s)", material.private_key is not None)
    yield


app = FastAPI(title="Token Authority", version="0.1.0", lifespan=lifespan)
app.include_router(credentials_router, tags=["credentials"])
app.include_router(token_router, tags=["token"])
app.include_router(check_router, tags=["check"])


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "token_authority"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "token_authority.main:app",
        host="127.0.0.1",
        port=9000,
        reload=True,
    )
