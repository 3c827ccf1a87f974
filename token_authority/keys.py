"""
RSA key material for signing and verifying tokens.
One key pair per process: loaded once at startup from PEM text/files, a certificate,
or a PKCS#12 bundle, then treated as read-only.
"""
import base64
import logging
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey, generate_private_key
from cryptography.hazmat.primitives.serialization import pkcs12
from jwt.algorithms import RSAAlgorithm

from token_authority.errors import KeyMaterialError, PrivateKeyMissing, PublicKeyMissing

logger = logging.getLogger(__name__)

_KEY_BITS = 2048
_RS256 = RSAAlgorithm(RSAAlgorithm.SHA256)


def _generate_key():
    return generate_private_key(65537, _KEY_BITS, default_backend())


def _serialize_private(key) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def load_private(pem: str | bytes, password: bytes | None = None) -> RSAPrivateKey:
    """Parse a PEM private key. Raises KeyMaterialError if it is not an RSA private key."""
    try:
        key = serialization.load_pem_private_key(_as_bytes(pem), password=password, backend=default_backend())
    except (ValueError, TypeError) as e:
        raise KeyMaterialError(f"Invalid private key: {e}") from e
    if not isinstance(key, RSAPrivateKey):
        raise KeyMaterialError("Private key is not RSA")
    return key


def _public_from_certificate(data: bytes) -> RSAPublicKey:
    try:
        cert = x509.load_pem_x509_certificate(data, default_backend())
    except ValueError:
        cert = x509.load_der_x509_certificate(data, default_backend())
    return cert.public_key()


def load_public(source: str | bytes | Path) -> RSAPublicKey:
    """
    Public key from PEM text (SubjectPublicKeyInfo or certificate) or from a certificate/PEM file path.
    Certificate files may be PEM or DER (.cer).
    """
    if isinstance(source, Path) or (isinstance(source, str) and "-----BEGIN" not in source):
        try:
            data = Path(source).read_bytes()
        except OSError as e:
            raise KeyMaterialError(f"Cannot read public key from {source}: {e}") from e
    else:
        data = _as_bytes(source)
    try:
        if b"-----BEGIN CERTIFICATE" in data or b"-----BEGIN" not in data:
            key = _public_from_certificate(data)
        else:
            key = serialization.load_pem_public_key(data, backend=default_backend())
    except (ValueError, TypeError) as e:
        raise KeyMaterialError(f"Invalid public key: {e}") from e
    if not isinstance(key, RSAPublicKey):
        raise KeyMaterialError("Public key is not RSA")
    return key


@dataclass(frozen=True)
class KeyMaterial:
    """
    RSA public and/or private key. A private key without an explicit public key
    carries its derived public key. Immutable once constructed.
    """

    public_key: RSAPublicKey | None = None
    private_key: RSAPrivateKey | None = None

    def __post_init__(self):
        if self.public_key is None and self.private_key is not None:
            object.__setattr__(self, "public_key", self.private_key.public_key())

    @classmethod
    def from_pem(cls, public_pem: str | bytes | None = None, private_pem: str | bytes | None = None) -> "KeyMaterial":
        private_key = load_private(private_pem) if private_pem else None
        public_key = load_public(public_pem) if public_pem else None
        return cls(public_key=public_key, private_key=private_key)

    @classmethod
    def from_p12(cls, path: str | Path, passphrase: str | None) -> "KeyMaterial":
        """Both keys from a PKCS#12 bundle; the public key is derived from the private key."""
        try:
            data = Path(path).read_bytes()
            private_key, _cert, _extra = pkcs12.load_key_and_certificates(
                data, passphrase.encode("utf-8") if passphrase else None, default_backend()
            )
        except (OSError, ValueError) as e:
            raise KeyMaterialError(f"Cannot read PKCS#12 bundle {path}: {e}") from e
        if not isinstance(private_key, RSAPrivateKey):
            raise KeyMaterialError(f"PKCS#12 bundle {path} holds no RSA private key")
        return cls(private_key=private_key)

    def with_public(self, public_key: RSAPublicKey) -> "KeyMaterial":
        return KeyMaterial(public_key=public_key, private_key=self.private_key)

    def require_private(self) -> RSAPrivateKey:
        if self.private_key is None:
            raise PrivateKeyMissing()
        return self.private_key

    def require_public(self) -> RSAPublicKey:
        if self.public_key is None:
            raise PublicKeyMissing()
        return self.public_key

    def sign(self, data: bytes) -> bytes:
        """RS256 (PKCS#1 v1.5, SHA-256) signature of data."""
        return _RS256.sign(data, self.require_private())

    def verify(self, data: bytes, signature: bytes, public_key: RSAPublicKey | None = None) -> bool:
        return _RS256.verify(data, public_key or self.require_public(), signature)

    def rsa_encrypt(self, plaintext: bytes) -> bytes:
        """
        Raw RSA with the private exponent over a PKCS#1 v1.5 type 1 block, byte-compatible
        with OpenSSL RSA_private_encrypt so tags decode with RSA_public_decrypt in other
        stacks. Anyone holding the public key can recover the plaintext with rsa_decrypt;
        only the private key holder can produce it.

        cryptography exposes no private-encrypt call, so this is a plain modular
        exponentiation without blinding. Only use it on public, fixed inputs such as the
        issuer string.
        """
        key = self.require_private()
        k = (key.key_size + 7) // 8
        if len(plaintext) > k - 11:
            raise ValueError(f"Plaintext too long for RSA tag ({len(plaintext)} > {k - 11} bytes)")
        block = b"\x00\x01" + b"\xff" * (k - 3 - len(plaintext)) + b"\x00" + plaintext
        numbers = key.private_numbers()
        n = numbers.public_numbers.n
        value = pow(int.from_bytes(block, "big"), numbers.d, n)
        return value.to_bytes(k, "big")

    def rsa_decrypt(self, ciphertext: bytes, public_key: RSAPublicKey | None = None) -> bytes:
        """Recover the plaintext of rsa_encrypt. Raises InvalidSignature if it was not produced by the pair."""
        key = public_key or self.require_public()
        return key.recover_data_from_signature(ciphertext, padding.PKCS1v15(), None)


def load_or_create_signing_key(path: str) -> RSAPrivateKey:
    """
    Load RSA private key from path, or generate and save.
    """
    p = Path(path)
    if p.exists():
        return load_private(p.read_bytes())
    key = _generate_key()
    try:
        p.write_bytes(_serialize_private(key))
        logger.info("Generated and saved signing key to %s", path)
    except OSError as e:
        logger.warning("Could not save signing key to %s: %s", path, e)
    return key


def load_from_cert_dir(cert_dir: str, passphrase: str) -> KeyMaterial | None:
    """
    Scan a directory for the first *.p12 (key pair) and *.cer (public certificate).
    A certificate overrides the public key taken from the bundle. None if neither exists.
    """
    directory = Path(cert_dir)
    material = None
    bundles = sorted(directory.glob("*.p12"))
    if bundles:
        material = KeyMaterial.from_p12(bundles[0], passphrase)
        logger.info("Loaded key pair from %s", bundles[0])
    certificates = sorted(directory.glob("*.cer"))
    if certificates:
        public_key = load_public(certificates[0])
        material = material.with_public(public_key) if material else KeyMaterial(public_key=public_key)
        logger.info("Loaded public key from certificate %s", certificates[0])
    return material


def issuer_tag(material: KeyMaterial, issuer: str) -> str:
    """Base64 of the RSA-tagged issuer string, as carried in the iss claim."""
    return base64.b64encode(material.rsa_encrypt(issuer.encode("utf-8"))).decode("ascii")


def recover_issuer(material: KeyMaterial, tag: str) -> str | None:
    """Issuer string recovered from an iss tag, or None if the tag does not open with our public key."""
    try:
        raw = base64.b64decode(tag, validate=True)
        return material.rsa_decrypt(raw).decode("utf-8")
    except (ValueError, TypeError, InvalidSignature, UnicodeDecodeError):
        return None


# Module-level state (set at app startup)
_material: KeyMaterial | None = None


def _load_configured() -> KeyMaterial:
    from token_authority.config import CERT_DIR, CERT_SECRET, PUBLIC_KEY_PATH, SIGNING_KEY_PATH

    material = load_from_cert_dir(CERT_DIR, CERT_SECRET) if CERT_DIR else None
    if material is None:
        private_key = load_or_create_signing_key(SIGNING_KEY_PATH) if SIGNING_KEY_PATH else None
        material = KeyMaterial(private_key=private_key)
    if PUBLIC_KEY_PATH:
        material = material.with_public(load_public(Path(PUBLIC_KEY_PATH)))
    if material.private_key is None:
        logger.info("No private key configured; tokens can be verified but not issued")
    return material


def get_key_material() -> KeyMaterial:
    """Return the process key material, loading it on first use."""
    global _material
    if _material is None:
        _material = _load_configured()
    return _material
