"""
Token authority configuration. Read once from the environment at startup.
No secrets in this file; the PKCS#12 passphrase and key paths come from env.
"""
import os

# Issuer identity. Embedded in tokens as an RSA tag, recovered and compared on verification.
ISSUER = os.environ.get("OAUTH_ISSUER", "http://127.0.0.1:9000").rstrip("/")

# Access token lifetime (seconds)
TOKEN_TTL_SECONDS = int(os.environ.get("OAUTH_TOKEN_TTL", "3600"))

# Allowed clock drift (seconds) for iat and nbf; exp is checked strictly
CLOCK_SKEW_SECONDS = int(os.environ.get("OAUTH_CLOCK_SKEW", "30"))

# SQLite DB for development
DATABASE_URL = os.environ.get("AUTH_DATABASE_URL", "sqlite:///./token_authority.db")

# Directory scanned at startup for *.p12 (key pair) and *.cer (public certificate)
CERT_DIR = os.environ.get("OAUTH_CERT_DIR", "").strip() or None

# Passphrase of the PKCS#12 bundle in CERT_DIR
CERT_SECRET = os.environ.get("OAUTH_CERT_SECRET", "")

# RSA private key PEM for signing. Generated and saved if missing; empty = verify-only deployment.
SIGNING_KEY_PATH = os.environ.get("OAUTH_SIGNING_KEY_PATH", ".auth_signing_key.pem").strip() or None

# Optional public key PEM or certificate; overrides the public key derived from the signing key.
PUBLIC_KEY_PATH = os.environ.get("OAUTH_PUBLIC_KEY_PATH", "").strip() or None
