from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from app.models import (
    AuditActorType,
    CashStatus,
    NotificationType,
    RequestStatus,
    RequestType,
    SOSType,
    UserStanding,
    WarningStatus,
)
from app.roles import Role

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class StrictRequest(BaseModel):
    """Update payloads: unknown fields are rejected instead of silently merged."""

    model_config = ConfigDict(extra="forbid")


class SuccessResponse(BaseModel):
    success: bool = True


# Companies and markets


class CompanyRead(BaseModel):
    id: int
    name: str
    code: str
    address: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CompanyRegisterRequest(BaseModel):
    company_name: str = Field(min_length=2, max_length=255)
    company_code: str = Field(min_length=4, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")
    company_address: str | None = Field(default=None, max_length=500)
    owner_name: str = Field(min_length=1, max_length=255)
    owner_email: EmailStr
    owner_phone: str | None = Field(default=None, max_length=64)
    password: str = Field(min_length=8, max_length=128)


class CompanyUpdateRequest(StrictRequest):
    name: str | None = Field(default=None, min_length=2, max_length=255)
    address: str | None = Field(default=None, max_length=500)


class MarketCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: str | None = Field(default=None, max_length=500)


class MarketUpdate(StrictRequest):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    address: str | None = Field(default=None, max_length=500)


class MarketRead(BaseModel):
    id: int
    name: str
    address: str | None = None
    company_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MarketWithCountRead(MarketRead):
    user_count: int = 0


# Users


class UserSummaryRead(BaseModel):
    id: int
    name: str
    email: str
    role: Role

    model_config = ConfigDict(from_attributes=True)


class UserRead(BaseModel):
    id: int
    email: str
    company_id: int
    name: str
    phone: str | None = None
    profile_picture: str | None = None
    role: Role
    standing: UserStanding
    market_id: int | None = None
    hourly_rate: Decimal
    holiday_rate: Decimal
    accumulated_salary: Decimal
    theme: str
    accent_color: str
    language: str
    two_factor_enabled: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ContractRead(BaseModel):
    id: int
    user_id: int
    start_date: datetime
    end_date: datetime
    is_active: bool
    notice_date: datetime | None = None
    renewal_requested: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthUserRead(UserRead):
    company: CompanyRead | None = None
    contract: ContractRead | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    company_code: str = Field(min_length=1, max_length=64)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=1, max_length=255)
    company_code: str = Field(min_length=1, max_length=64)
    phone: str | None = Field(default=None, max_length=64)
    market_id: int | None = Field(default=None, ge=1)


class AuthResponse(BaseModel):
    user: AuthUserRead
    token: str


class MeResponse(BaseModel):
    user: AuthUserRead


class CompanyRegisterResponse(BaseModel):
    company: CompanyRead
    user: UserRead


class ProfileUpdateRequest(StrictRequest):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    profile_picture: str | None = None
    theme: str | None = Field(default=None, max_length=32)
    accent_color: str | None = Field(default=None, max_length=32)
    language: str | None = Field(default=None, max_length=16)


class PasswordChangeRequest(StrictRequest):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=6, max_length=128)


class TwoFactorUpdateRequest(StrictRequest):
    enabled: bool


class UserAdminCreateRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    role: Role = Role.STAFF
    market_id: int | None = Field(default=None, ge=1)
    hourly_rate: Decimal | None = Field(default=None, ge=0)
    holiday_rate: Decimal | None = Field(default=None, ge=0)


class UserAdminUpdateRequest(StrictRequest):
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=6, max_length=128)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    role: Role | None = None
    standing: UserStanding | None = None
    market_id: int | None = Field(default=None, ge=1)
    hourly_rate: Decimal | None = Field(default=None, ge=0)
    holiday_rate: Decimal | None = Field(default=None, ge=0)


class StandingUpdateRequest(StrictRequest):
    standing: UserStanding


class TodayShiftRead(BaseModel):
    start_time: str
    end_time: str
    position: str


class TeamMemberRead(BaseModel):
    id: int
    name: str
    email: str
    role: Role
    standing: UserStanding
    market_id: int | None = None
    hourly_rate: Decimal
    today_shift: TodayShiftRead | None = None


# Schedules


class ScheduleCreate(BaseModel):
    user_id: int = Field(ge=1)
    market_id: int | None = Field(default=None, ge=1)
    date: datetime
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
    break_start: str | None = Field(default=None, pattern=HHMM_PATTERN)
    break_end: str | None = Field(default=None, pattern=HHMM_PATTERN)
    position: str = Field(min_length=1, max_length=255)

    @model_validator(mode="after")
    def _validate_break(self) -> "ScheduleCreate":
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("break_start and break_end must be provided together.")
        return self


class ScheduleRead(BaseModel):
    id: int
    user_id: int
    market_id: int | None = None
    date: datetime
    start_time: str
    end_time: str
    break_start: str | None = None
    break_end: str | None = None
    position: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Requests


class RequestCreate(BaseModel):
    # Owner is always the caller; any client-sent user_id is ignored.
    type: RequestType = RequestType.REQUEST
    subject: str = Field(min_length=1, max_length=255)
    details: str = Field(min_length=1, max_length=5000)
    is_anonymous: bool = False


class RequestStatusUpdate(StrictRequest):
    status: RequestStatus

    @field_validator("status")
    @classmethod
    def _validate_decision(cls, value: RequestStatus) -> RequestStatus:
        if value == RequestStatus.PENDING:
            raise ValueError("status must be approved or declined")
        return value


class RequestRead(BaseModel):
    id: int
    user_id: int
    type: RequestType
    subject: str
    details: str
    status: RequestStatus
    is_anonymous: bool
    reviewed_by: int | None = None
    reviewer: UserSummaryRead | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RequestQueueItemRead(RequestRead):
    user_name: str


# Warnings


class WarningCreate(BaseModel):
    user_id: int = Field(ge=1)
    reason: str = Field(min_length=1, max_length=5000)
    is_firing_notice: bool = False
    market_wide: bool = False
    market_id: int | None = Field(default=None, ge=1)


class WarningRead(BaseModel):
    id: int
    user_id: int
    issued_by: int | None = None
    reason: str
    status: WarningStatus
    is_firing_notice: bool
    market_wide: bool
    market_id: int | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Cash register


class CashRegisterCreate(BaseModel):
    shift_date: datetime
    status: CashStatus
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    notes: str | None = Field(default=None, max_length=2000)


class CashRegisterRead(BaseModel):
    id: int
    user_id: int
    shift_date: datetime
    status: CashStatus
    amount: Decimal
    notes: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Contracts


class ContractCreate(BaseModel):
    user_id: int = Field(ge=1)
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    notice_date: datetime | None = None
    renewal_requested: bool = False

    @model_validator(mode="after")
    def _validate_range(self) -> "ContractCreate":
        start = self.start_date if self.start_date.tzinfo else self.start_date.replace(tzinfo=timezone.utc)
        end = self.end_date if self.end_date.tzinfo else self.end_date.replace(tzinfo=timezone.utc)
        if end < start:
            raise ValueError("end_date must be greater than or equal to start_date")
        return self


class ContractUpdate(StrictRequest):
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool | None = None
    notice_date: datetime | None = None
    renewal_requested: bool | None = None


# SOS


class SOSCreate(BaseModel):
    type: SOSType


class SOSRead(BaseModel):
    id: int
    user_id: int
    type: SOSType
    resolved: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Salary


class SalaryPaymentCreate(BaseModel):
    user_id: int = Field(ge=1)
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    period: str = Field(min_length=1, max_length=64)


class SalaryPaymentRead(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    period: str
    paid_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SalaryOverviewRead(BaseModel):
    accumulated_salary: Decimal
    hourly_rate: Decimal
    holiday_rate: Decimal
    payments: list[SalaryPaymentRead] = Field(default_factory=list)


# Notifications


class NotificationRead(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    type: NotificationType
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Admin


class AdminDashboardRead(BaseModel):
    total_users: int
    pending_requests: int
    active_warnings: int
    recent_sos: list[SOSRead] = Field(default_factory=list)


class CompanyStatsRead(BaseModel):
    total_users: int
    owners: int
    admins: int
    managers: int
    supervisors: int
    staff: int
    total_markets: int
    pending_requests: int
    role_counts: dict[str, int] = Field(default_factory=dict)


class AdminSettingsRead(BaseModel):
    default_hourly_rate: Decimal
    default_holiday_rate: Decimal
    role_hierarchy_enabled: bool


class AuditLogRead(BaseModel):
    id: int
    ts_utc: datetime
    actor_type: AuditActorType
    actor_id: str
    action: str
    entity_type: str | None = None
    entity_id: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    success: bool
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)
