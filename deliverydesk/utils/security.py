# deliverydesk/utils/security.py

import base64
from fastapi import UploadFile
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from deliverydesk.core.config import settings

ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/png", "image/webp", "image/heic"]


class ImageRejected(Exception):
    pass


# Encryption for store access tokens (Shopify)
# Master key should be set in environment variable: ENCRYPTION_MASTER_KEY
def _get_encryption_key() -> bytes:
    """Derive encryption key from master key in settings"""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b'deliverydesk-salt-v1',  # Static salt (app-level encryption)
        iterations=100000,
    )
    return base64.urlsafe_b64encode(kdf.derive(settings.encryption_master_key.encode()))


def encrypt_access_token(plain_token: str) -> str:
    """Encrypt a store access token for storage in database"""
    if not plain_token:
        return ""

    fernet = Fernet(_get_encryption_key())
    return fernet.encrypt(plain_token.encode()).decode()


def decrypt_access_token(encrypted_token: str) -> str:
    """Decrypt a store access token. Invalid/corrupted tokens decrypt to ''."""
    if not encrypted_token:
        return ""

    try:
        fernet = Fernet(_get_encryption_key())
        return fernet.decrypt(encrypted_token.encode()).decode()
    except InvalidToken:
        return ""


async def validate_and_read_image(file: UploadFile) -> bytes:
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise ImageRejected("Invalid file type.")

    contents = await file.read()

    if len(contents) > settings.max_photo_bytes:
        raise ImageRejected("File too large (10MB max).")

    return contents


def to_data_url(contents: bytes, content_type: str) -> str:
    encoded = base64.b64encode(contents).decode()
    return f"data:{content_type};base64,{encoded}"
