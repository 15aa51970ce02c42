from fastapi import APIRouter, HTTPException, Request, Response, status
from database import database
from models import RegisterRequest, LoginRequest, User, AuditAction, utc_now
from auth import verify_password, hash_password, create_access_token, JWT_EXPIRATION_HOURS
from middleware import require_auth, SESSION_COOKIE
from services.email_service import email_service
from services.notification_preferences import get_or_create_preferences
from utils.audit import create_audit_log
from utils.rate_limiter import rate_limiter, LOGIN_MAX_ATTEMPTS, LOGIN_WINDOW_MINUTES
from typing import Any, Dict
import os
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])

SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """User fields safe to return; never the password hash."""
    return {
        "userId": user["user_id"],
        "username": user["username"],
        "email": user["email"],
        "fullName": user.get("full_name"),
        "phone": user.get("phone"),
        "createdAt": user.get("created_at"),
    }

def start_session(response: Response, user: Dict[str, Any]) -> str:
    token = create_access_token({"user_id": user["user_id"], "username": user["username"]})
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
        max_age=JWT_EXPIRATION_HOURS * 3600,
    )
    return token

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: Request, response: Response, data: RegisterRequest):
    """Create an account, its default notification preferences and a session."""
    db = database.get_db()

    try:
        if await db.users.find_one({"username": data.username}, {"_id": 0, "user_id": 1}):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username already exists"
            )

        if await db.users.find_one({"email": data.email}, {"_id": 0, "user_id": 1}):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already exists"
            )

        user_obj = User(
            username=data.username,
            email=data.email,
            password_hash=hash_password(data.password),
            full_name=data.full_name,
            phone=data.phone,
        )
        user_doc = user_obj.model_dump(mode="json")
        await db.users.insert_one(user_doc)
        user_doc.pop("_id", None)

        await get_or_create_preferences(user_obj.user_id)

        token = start_session(response, user_doc)
        await email_service.send_welcome_email(
            recipient=user_doc["email"],
            user_name=user_doc.get("full_name") or user_doc["username"],
            user_id=user_obj.user_id
        )

        await create_audit_log(
            action=AuditAction.USER_REGISTERED,
            actor_id=user_obj.user_id,
            resource_type="user",
            resource_id=user_obj.user_id,
            ip_address=request.client.host if request.client else None
        )
        logger.info(f"User registered: {user_obj.user_id}")

        return {**public_user(user_doc), "accessToken": token}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Registration error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

@router.post("/login")
async def login(request: Request, response: Response, credentials: LoginRequest):
    """Username/password login; sets the session cookie."""
    db = database.get_db()
    ip = request.client.host if request.client else "unknown"

    allowed, message = await rate_limiter.check_rate_limit(
        f"login:{ip}:{credentials.username}",
        max_attempts=LOGIN_MAX_ATTEMPTS,
        window_minutes=LOGIN_WINDOW_MINUTES
    )
    if not allowed:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=message)

    try:
        user = await db.users.find_one({"username": credentials.username}, {"_id": 0})

        if not user or not user.get("password_hash") or not verify_password(
            credentials.password,
            user["password_hash"]
        ):
            await create_audit_log(
                action=AuditAction.USER_LOGIN_FAILED,
                actor_id=user["user_id"] if user else None,
                metadata={"username": credentials.username},
                ip_address=ip
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid credentials"
            )

        await db.users.update_one(
            {"user_id": user["user_id"]},
            {"$set": {"last_login": utc_now().isoformat()}}
        )

        token = start_session(response, user)
        rate_limiter.reset(f"login:{ip}:{credentials.username}")

        await create_audit_log(
            action=AuditAction.USER_LOGIN_SUCCESS,
            actor_id=user["user_id"],
            ip_address=ip
        )

        return {**public_user(user), "accessToken": token}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

@router.post("/logout")
async def logout(request: Request, response: Response):
    """Clear the session cookie. Safe to call without a session."""
    response.delete_cookie(SESSION_COOKIE)
    return {"message": "Logged out successfully"}

@router.get("/me")
async def get_me(request: Request):
    user = await require_auth(request)
    db = database.get_db()

    user_doc = await db.users.find_one({"user_id": user["user_id"]}, {"_id": 0})
    if not user_doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return public_user(user_doc)
