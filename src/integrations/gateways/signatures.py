from __future__ import annotations

import hashlib
import hmac
import secrets


def paystack_signature(raw_body: bytes, secret_key: str) -> str:
    return hmac.new(secret_key.encode(), raw_body, hashlib.sha512).hexdigest()


def verify_paystack(raw_body: bytes, signature: str | None, secret_key: str) -> bool:
    """x-paystack-signature is the hex HMAC-SHA512 of the raw body keyed with the secret key."""
    if not secret_key or not signature:
        return False
    return hmac.compare_digest(paystack_signature(raw_body, secret_key), signature.strip().lower())


def verify_flutterwave(verif_hash: str | None, secret_hash: str) -> bool:
    """verif-hash must equal the secret hash configured on the dashboard."""
    if not secret_hash or not verif_hash:
        return False
    return secrets.compare_digest(verif_hash.strip(), secret_hash)
