"""
Pytest configuration for token_authority. In-memory SQLite and a throwaway signing key
so tests don't touch the working directory.
"""
import os
import tempfile

import pytest

# In-memory SQLite; database.py uses StaticPool so all connections share the same DB
os.environ["AUTH_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["OAUTH_ISSUER"] = "https://auth.test.local"
os.environ["OAUTH_TOKEN_TTL"] = "60"
os.environ["OAUTH_CLOCK_SKEW"] = "30"
os.environ["OAUTH_SIGNING_KEY_PATH"] = os.path.join(tempfile.mkdtemp(), "signing_key.pem")
os.environ.pop("OAUTH_CERT_DIR", None)
os.environ.pop("OAUTH_PUBLIC_KEY_PATH", None)

from cryptography.hazmat.backends import default_backend  # noqa: E402
from cryptography.hazmat.primitives.asymmetric.rsa import generate_private_key  # noqa: E402

from token_authority.database import SessionLocal, init_db  # noqa: E402
from token_authority.keys import KeyMaterial  # noqa: E402
from token_authority.models import Credential, Endpoint  # noqa: E402


@pytest.fixture
def db():
    """Session on a fresh schema; rows are removed afterwards."""
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.query(Endpoint).delete()
        session.query(Credential).delete()
        session.commit()
        session.close()


@pytest.fixture(scope="session")
def key_material():
    return KeyMaterial(private_key=generate_private_key(65537, 2048, default_backend()))


@pytest.fixture(scope="session")
def other_key_material():
    return KeyMaterial(private_key=generate_private_key(65537, 2048, default_backend()))
