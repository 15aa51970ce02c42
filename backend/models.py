from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any
from datetime import date, datetime, timezone
from enum import Enum
import uuid

from utils.dates import parse_service_date, parse_optional_service_date


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

# ============================================================================
# ENUMS (System Constants)
# ============================================================================

class ServiceStatus(str, Enum):
    OVERDUE = "OVERDUE"
    UPCOMING = "UPCOMING"  # Due within the card-level urgency window
    NORMAL = "NORMAL"

class ReminderStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"

class ReminderTrigger(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"

class ReminderChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"

class AuthProvider(str, Enum):
    LOCAL = "local"
    FIREBASE = "firebase"

class AuditAction(str, Enum):
    # Auth
    USER_REGISTERED = "USER_REGISTERED"
    USER_LOGIN_SUCCESS = "USER_LOGIN_SUCCESS"
    USER_LOGIN_FAILED = "USER_LOGIN_FAILED"
    USER_LOGOUT = "USER_LOGOUT"
    USER_UPDATED = "USER_UPDATED"

    # AC units
    AC_UNIT_CREATED = "AC_UNIT_CREATED"
    AC_UNIT_UPDATED = "AC_UNIT_UPDATED"
    AC_UNIT_DELETED = "AC_UNIT_DELETED"

    # Access
    OWNERSHIP_DENIED = "OWNERSHIP_DENIED"

    # Notifications
    PREFERENCES_UPDATED = "PREFERENCES_UPDATED"
    REMINDER_SENT = "REMINDER_SENT"
    REMINDER_FAILED = "REMINDER_FAILED"
    EMAIL_SENT = "EMAIL_SENT"
    EMAIL_FAILED = "EMAIL_FAILED"

class EmailTemplateAlias(str, Enum):
    SERVICE_REMINDER = "service-reminder"
    OVERDUE_REMINDER = "overdue-reminder"
    WELCOME = "welcome"

# ============================================================================
# STORED DOCUMENTS
# ============================================================================

class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    username: str
    email: EmailStr
    password_hash: Optional[str] = None  # Not set for Firebase accounts
    full_name: Optional[str] = None
    phone: Optional[str] = None
    auth_provider: AuthProvider = AuthProvider.LOCAL
    firebase_uid: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

class AcUnit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    unit_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    location: str
    last_service_date: Optional[date] = None
    next_service_date: date
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

class NotificationPreferences(BaseModel):
    """Per-user reminder settings."""
    model_config = ConfigDict(extra="ignore")

    user_id: str
    email_enabled: bool = True
    sms_enabled: bool = False
    days_before_service: int = 7  # Lead time; bounded only on input
    updated_at: datetime = Field(default_factory=utc_now)

class Reminder(BaseModel):
    model_config = ConfigDict(extra="ignore")

    reminder_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    unit_id: str
    unit_location: str
    service_date: date
    reminder_date: date  # Day the reminder went out
    sent_to: str
    channels: list[ReminderChannel] = Field(default_factory=list)
    trigger: ReminderTrigger = ReminderTrigger.MANUAL
    status: ReminderStatus = ReminderStatus.SENT
    error_message: Optional[str] = None
    sent_at: datetime = Field(default_factory=utc_now)

class AuditLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    audit_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    action: AuditAction
    actor_id: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    before_state: Optional[Dict[str, Any]] = None
    after_state: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)

class MessageLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    postmark_message_id: Optional[str] = None
    user_id: Optional[str] = None
    recipient: EmailStr
    template_alias: EmailTemplateAlias
    subject: str
    status: str = "queued"
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    provider_error_type: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

# ============================================================================
# REQUEST MODELS (camelCase on the wire, snake_case accepted too)
# ============================================================================

class ApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

class RegisterRequest(ApiModel):
    username: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=1)
    full_name: Optional[str] = None
    phone: Optional[str] = None

class LoginRequest(ApiModel):
    username: str
    password: str

class UpdateUserRequest(ApiModel):
    username: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=1)
    full_name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("username", "email", "password", mode="before")
    @classmethod
    def _not_null(cls, value, info):
        # Login identifiers and the credential can change but never be cleared
        if value is None:
            raise ValueError(f"{info.field_name} cannot be cleared")
        return value

class CreateAcUnitRequest(ApiModel):
    location: str = Field(min_length=1)
    last_service_date: Optional[date] = None
    next_service_date: date
    notes: Optional[str] = None

    @field_validator("next_service_date", mode="before")
    @classmethod
    def _parse_next(cls, value):
        return parse_service_date(value)

    @field_validator("last_service_date", mode="before")
    @classmethod
    def _parse_last(cls, value):
        return parse_optional_service_date(value)

class UpdateAcUnitRequest(ApiModel):
    location: Optional[str] = Field(default=None, min_length=1)
    last_service_date: Optional[date] = None
    next_service_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("next_service_date", mode="before")
    @classmethod
    def _parse_next(cls, value):
        # Present-but-null would leave a unit without a schedule
        if value is None:
            raise ValueError("nextServiceDate cannot be cleared")
        return parse_service_date(value)

    @field_validator("location", mode="before")
    @classmethod
    def _location_not_null(cls, value):
        if value is None:
            raise ValueError("location cannot be cleared")
        return value

    @field_validator("last_service_date", mode="before")
    @classmethod
    def _parse_last(cls, value):
        return parse_optional_service_date(value)

class NotificationPreferencesRequest(ApiModel):
    email_enabled: Optional[bool] = None
    sms_enabled: Optional[bool] = None
    days_before_service: Optional[int] = Field(default=None, ge=1, le=30)
