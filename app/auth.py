import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import AUTH_JWT_AUDIENCE, AUTH_JWT_SECRET
from .database import get_db
from .models import Designer, Profile

logger = logging.getLogger(__name__)

security = HTTPBearer()

ALGORITHM = "HS256"


def decode_access_token(token: str) -> dict:
    """
    Verify an access token issued by the hosted auth provider.

    Tokens are HS256-signed with the project's JWT secret and carry the
    ``authenticated`` audience. Expired, malformed or wrongly signed tokens
    raise 401.
    """
    try:
        return jwt.decode(
            token,
            AUTH_JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=AUTH_JWT_AUDIENCE,
        )
    except ExpiredSignatureError as e:
        logger.info("ℹ️ Expired access token presented")
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except JWTError as e:
        logger.warning(f"⚠️ Token verification failed: {type(e).__name__}")
        raise HTTPException(status_code=401, detail="Invalid authentication token") from e


def _profile_fields_from_claims(claims: dict) -> dict:
    meta = claims.get("user_metadata") or {}
    full_name = meta.get("full_name") or meta.get("name") or ""
    first_name = meta.get("first_name")
    last_name = meta.get("last_name")
    if not first_name and full_name:
        first_name, _, last_name = full_name.partition(" ")
    return {
        "email": claims.get("email"),
        "phone": claims.get("phone") or meta.get("phone"),
        "full_name": full_name or None,
        "first_name": first_name or None,
        "last_name": last_name or None,
        "user_type": meta.get("user_type", "customer"),
    }


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    """Resolve the bearer token to a Profile, creating it on first sight"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    claims = decode_access_token(token)
    user_id = claims.get("sub")
    if not user_id:
        logger.error(f"❌ Token missing subject claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if profile:
        return profile

    logger.info(f"🆕 Creating profile for new user: {user_id}")
    profile = Profile(user_id=user_id, **_profile_fields_from_claims(claims))
    db.add(profile)
    try:
        db.commit()
        db.refresh(profile)
    except IntegrityError:
        # Concurrent first request for the same user already created it
        db.rollback()
        profile = db.query(Profile).filter(Profile.user_id == user_id).first()
        if not profile:
            raise
    return profile


async def get_current_designer(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Designer:
    """The caller's designer row; 403 for non-designers"""
    designer = db.query(Designer).filter(Designer.user_id == current_user.user_id).first()
    if not designer:
        logger.warning(f"⚠️ User {current_user.user_id} attempted a designer-only action")
        raise HTTPException(status_code=403, detail="Designer account required")
    return designer
