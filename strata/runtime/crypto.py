"""Signing helpers for registry snapshots recorded in the logbook."""
from __future__ import annotations

from pathlib import Path

from ..constants import KEY_FILE, PUB_FILE

try:  # pragma: no cover - optional dependency
    from cryptography.hazmat.primitives.asymmetric import ed25519
    from cryptography.hazmat.primitives import serialization
    from cryptography.exceptions import InvalidSignature
except ImportError:  # pragma: no cover
    ed25519 = serialization = InvalidSignature = None


def _require_cryptography():
    if ed25519 is None or serialization is None:
        raise RuntimeError(
            "Cryptography support is unavailable; install the 'cryptography' package"
        )


def ensure_keypair(key_file=KEY_FILE, pub_file=PUB_FILE):
    """Load the Ed25519 signing key, generating and saving a pair if missing."""

    _require_cryptography()
    key_path = Path(key_file)
    if key_path.exists():
        return serialization.load_pem_private_key(key_path.read_bytes(), password=None)

    print("🔐 Generating new Strata signing key ...")
    private_key = ed25519.Ed25519PrivateKey.generate()
    key_path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    Path(pub_file).write_bytes(
        private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    print(f"  ✓ Keys written to {key_file}, {pub_file}")
    return private_key


def sign_hash(sha256_hex, key_file=KEY_FILE, pub_file=PUB_FILE):
    """Sign a SHA-256 hex digest, returning the signature as hex."""

    private_key = ensure_keypair(key_file, pub_file)
    return private_key.sign(sha256_hex.encode()).hex()


def verify_signature(sha256_hex, signature_hex, pub_file=PUB_FILE):
    """Check ``signature_hex`` over ``sha256_hex`` against the stored public key."""

    _require_cryptography()
    public_key = serialization.load_pem_public_key(Path(pub_file).read_bytes())
    try:
        public_key.verify(bytes.fromhex(signature_hex), sha256_hex.encode())
    except (InvalidSignature, ValueError):
        return False
    return True


__all__ = [
    "ensure_keypair",
    "sign_hash",
    "verify_signature",
]
