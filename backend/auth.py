from passlib.context import CryptContext
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
import os
import logging

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

JWT_SECRET = os.getenv("JWT_SECRET", "cooltrack-secret-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRATION_HOURS = int(os.getenv("JWT_EXPIRATION_HOURS", "24"))

AUTH_PROVIDER = os.getenv("AUTH_PROVIDER", "local").strip().lower()
FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS", "firebase-key.json")

def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRATION_HOURS)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)

def decode_access_token(token: str) -> Optional[Dict]:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None

def firebase_enabled() -> bool:
    return AUTH_PROVIDER == "firebase"

def _init_firebase():
    import firebase_admin
    from firebase_admin import credentials

    if not firebase_admin._apps:
        cred_path = FIREBASE_CREDENTIALS
        if not os.path.isabs(cred_path):
            cred_path = os.path.join(os.path.dirname(__file__), cred_path)
        firebase_admin.initialize_app(credentials.Certificate(cred_path))
        logger.info("Firebase admin initialized")

def verify_firebase_token(token: str) -> Optional[Dict]:
    """Verify a Firebase ID token and return its claims, or None if invalid."""
    from firebase_admin import auth as fb_auth

    _init_firebase()
    try:
        return fb_auth.verify_id_token(token)
    except (ValueError, fb_auth.InvalidIdTokenError, fb_auth.RevokedIdTokenError, fb_auth.UserDisabledError) as e:
        logger.warning(f"Firebase token rejected: {e}")
        return None
