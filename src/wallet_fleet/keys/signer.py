"""Wallet keys — Ed25519 keypairs and detached signatures in Base58.

Wallets use the Solana key encoding:
- public key: 32 raw bytes, Base58
- secret key: 64 bytes (32-byte seed followed by the public key), Base58
- signature: 64 raw bytes, Base58
"""

from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric import ed25519

# ---------------------------------------------------------------------------
# Base58 encoding / decoding
# ---------------------------------------------------------------------------

_B58_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

_SEED_LEN = 32
_SECRET_LEN = 64


def base58_encode(payload: bytes) -> str:
    """Encode raw bytes to Base58 (no checksum)."""
    n = int.from_bytes(payload, "big")
    result: list[int] = []
    while n > 0:
        n, remainder = divmod(n, 58)
        result.append(_B58_ALPHABET[remainder])
    # Preserve leading zero bytes
    for byte in payload:
        if byte == 0:
            result.append(_B58_ALPHABET[0])
        else:
            break
    return bytes(reversed(result)).decode("ascii")


def base58_decode(s: str) -> bytes:
    """Decode Base58 string to raw bytes (no checksum).

    Raises:
        ValueError: If *s* contains a character outside the Base58 alphabet.
    """
    n = 0
    for char in s:
        digit = _B58_ALPHABET.find(char.encode("ascii", errors="replace"))
        if digit < 0:
            msg = f"invalid Base58 character: {char!r}"
            raise ValueError(msg)
        n = n * 58 + digit
    result = n.to_bytes((n.bit_length() + 7) // 8, "big") if n > 0 else b""
    # Preserve leading '1' chars as 0x00 bytes
    pad_count = 0
    for char in s:
        if char == "1":
            pad_count += 1
        else:
            break
    return b"\x00" * pad_count + result


# ---------------------------------------------------------------------------
# Keypairs and signatures
# ---------------------------------------------------------------------------


def generate_keypair() -> tuple[str, str]:
    """Generate a fresh wallet keypair.

    Returns:
        ``(public_key, secret_key)``, both Base58 encoded.
    """
    sk = ed25519.Ed25519PrivateKey.generate()
    seed = sk.private_bytes_raw()
    pub = sk.public_key().public_bytes_raw()
    return base58_encode(pub), base58_encode(seed + pub)


def _load_secret(secret_key: str) -> ed25519.Ed25519PrivateKey:
    raw = base58_decode(secret_key)
    if len(raw) not in (_SEED_LEN, _SECRET_LEN):
        msg = f"secret key must be {_SEED_LEN} or {_SECRET_LEN} bytes, got {len(raw)}"
        raise ValueError(msg)
    return ed25519.Ed25519PrivateKey.from_private_bytes(raw[:_SEED_LEN])


def sign(secret_key: str, message: str) -> str:
    """Sign the UTF-8 bytes of *message*; returns a Base58 detached signature."""
    sk = _load_secret(secret_key)
    return base58_encode(sk.sign(message.encode("utf-8")))


def verify(public_key: str, message: str, signature: str) -> bool:
    """Check a Base58 detached signature against a Base58 public key."""
    try:
        pk = ed25519.Ed25519PublicKey.from_public_bytes(base58_decode(public_key))
        pk.verify(base58_decode(signature), message.encode("utf-8"))
    except (InvalidSignature, ValueError):
        return False
    return True
