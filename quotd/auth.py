import base64
import json
import logging
import time

import httpx
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509 import load_pem_x509_certificate
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import FIREBASE_PROJECT_ID
from .database import get_db
from .domain.scheduling.repository import SchedulingRepository
from .models import TeamMember

logger = logging.getLogger(__name__)

security = HTTPBearer()

GOOGLE_CERTS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)

# Cache for Google's public keys
_cached_keys = None


def _b64decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


async def get_google_public_keys(refresh: bool = False):
    """Fetch Google's public keys for Firebase token verification"""
    global _cached_keys
    if _cached_keys and not refresh:
        return _cached_keys

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(GOOGLE_CERTS_URL)
            if response.status_code == 200:
                _cached_keys = response.json()
                logger.info(f"✅ Fetched {len(_cached_keys)} Google public keys")
                return _cached_keys
            logger.error(f"❌ Failed to fetch Google public keys: HTTP {response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"❌ Error fetching Google public keys: {str(e)}")
    return None


async def verify_firebase_token(token: str) -> dict:
    """
    Verify a Firebase ID token: RS256 signature against Google's certificates,
    then audience, issuer and expiry claims.
    """
    if not FIREBASE_PROJECT_ID:
        logger.error("❌ FIREBASE_PROJECT_ID not configured")
        raise HTTPException(status_code=500, detail="Firebase not configured")

    parts = token.split(".")
    if len(parts) != 3:
        raise HTTPException(status_code=401, detail="Invalid token format")
    header_b64, payload_b64, signature_b64 = parts

    try:
        header = json.loads(_b64decode(header_b64))
        payload = json.loads(_b64decode(payload_b64))
        signature = _b64decode(signature_b64)
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=401, detail="Invalid token encoding") from e

    kid = header.get("kid")
    if header.get("alg") != "RS256" or not kid:
        raise HTTPException(status_code=401, detail="Invalid token header")

    public_keys = await get_google_public_keys()
    if not public_keys or kid not in public_keys:
        logger.warning(f"⚠️ Key ID {kid} not found in public keys, refreshing cache")
        public_keys = await get_google_public_keys(refresh=True)
        if not public_keys or kid not in public_keys:
            raise HTTPException(status_code=401, detail="Unable to verify token signature")

    public_key = load_pem_x509_certificate(public_keys[kid].encode()).public_key()
    try:
        public_key.verify(
            signature,
            f"{header_b64}.{payload_b64}".encode(),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except Exception as e:
        logger.error(f"❌ Token signature verification failed: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token signature") from e

    if payload.get("aud") != FIREBASE_PROJECT_ID:
        raise HTTPException(status_code=401, detail="Invalid token audience")
    if payload.get("iss") != f"https://securetoken.google.com/{FIREBASE_PROJECT_ID}":
        raise HTTPException(status_code=401, detail="Invalid token issuer")

    now = time.time()
    if payload.get("exp", 0) < now:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        )
    if payload.get("iat", 0) > now + 60:  # Allow 60 seconds clock skew
        raise HTTPException(status_code=401, detail="Invalid token")

    return payload


async def get_current_member(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> TeamMember:
    """Resolve the caller's primary team membership from their Firebase token"""
    decoded_token = await verify_firebase_token(credentials.credentials)

    # Firebase ID tokens use 'sub' as the user ID claim
    user_id = decoded_token.get("sub") or decoded_token.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token claims")

    member = SchedulingRepository.get_primary_membership(db, user_id)
    if not member:
        logger.warning(f"⚠️ User {user_id} has no team membership")
        raise HTTPException(status_code=403, detail="No team found. Please contact support.")

    return member
