"""Login, lockout and registration.

Login walks company -> user -> lock check -> password check. Every miss before
the lock check yields the same ``INVALID_CREDENTIALS`` error so callers cannot
tell which companies or e-mail addresses exist.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import ApiError, conflict, validation_error
from app.models import Company, Market, User
from app.roles import Role
from app.schemas import CompanyRegisterRequest, RegisterRequest
from app.security import hash_password, pwd_context, verify_password
from app.settings import get_settings

logger = logging.getLogger("app.auth")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_company_code(code: str) -> str:
    return code.strip().upper()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def invalid_credentials() -> ApiError:
    return ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid credentials.")


def account_locked() -> ApiError:
    return ApiError(status_code=423, code="ACCOUNT_LOCKED", message="Account locked. Try again later.")


def find_company_by_code(db: Session, code: str) -> Company | None:
    normalized = normalize_company_code(code)
    return db.scalar(select(Company).where(func.upper(Company.code) == normalized))


def find_company_user(db: Session, company_id: int, email: str) -> User | None:
    return db.scalar(
        select(User).where(
            User.company_id == company_id,
            func.lower(User.email) == normalize_email(email),
        )
    )


def _clear_expired_lock(db: Session, user: User, now: datetime) -> None:
    if user.locked_until is None or _to_utc(user.locked_until) > now:
        return
    user.failed_login_attempts = 0
    user.locked_until = None
    db.commit()
    logger.info("account_lock_expired", extra={"user_id": user.id, "company_id": user.company_id})


def register_failed_attempt(db: Session, user_id: int, *, now: datetime | None = None) -> tuple[int, bool]:
    """Atomically bump the failure counter, locking the account at the threshold.

    Returns ``(attempts, locked)`` as seen by this very update, so concurrent
    failures cannot both read the same count.
    """
    settings = get_settings()
    current = now or _utcnow()
    threshold = max(1, int(settings.login_max_failed_attempts))
    lock_until = current + timedelta(minutes=int(settings.login_lockout_minutes))
    next_attempts = User.failed_login_attempts + 1

    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(
            failed_login_attempts=next_attempts,
            locked_until=case((next_attempts >= threshold, lock_until), else_=User.locked_until),
        )
        .returning(User.failed_login_attempts)
        .execution_options(synchronize_session=False)
    )
    attempts = int(db.execute(stmt).scalar_one())
    db.commit()
    return attempts, attempts >= threshold


def reset_failed_attempts(db: Session, user: User) -> None:
    user.failed_login_attempts = 0
    user.locked_until = None
    db.commit()


def authenticate_user(
    db: Session,
    *,
    email: str,
    password: str,
    company_code: str,
    now: datetime | None = None,
) -> User:
    current = now or _utcnow()

    company = find_company_by_code(db, company_code)
    user = find_company_user(db, company.id, email) if company is not None else None
    if user is None:
        # Keep the miss path about as slow as a real hash check.
        pwd_context.dummy_verify()
        logger.info("login_failed", extra={"reason": "unknown_identity", "company_code": normalize_company_code(company_code)})
        raise invalid_credentials()

    if user.locked_until is not None and _to_utc(user.locked_until) > current:
        logger.warning("account_locked", extra={"user_id": user.id, "company_id": user.company_id})
        raise account_locked()
    _clear_expired_lock(db, user, current)

    if not verify_password(password, user.password_hash):
        attempts, locked = register_failed_attempt(db, user.id, now=current)
        db.refresh(user)
        logger.info(
            "login_failed",
            extra={"reason": "bad_password", "user_id": user.id, "company_id": user.company_id, "attempts": attempts},
        )
        if locked:
            logger.warning("account_locked", extra={"user_id": user.id, "company_id": user.company_id})
        raise invalid_credentials()

    reset_failed_attempts(db, user)
    db.refresh(user)
    return user


def register_company(db: Session, payload: CompanyRegisterRequest) -> tuple[Company, User]:
    code = normalize_company_code(payload.company_code)
    if find_company_by_code(db, code) is not None:
        raise conflict("Company code already in use.")

    company = Company(name=payload.company_name.strip(), code=code, address=payload.company_address)
    db.add(company)
    db.flush()

    settings = get_settings()
    owner = User(
        email=normalize_email(payload.owner_email),
        company_id=company.id,
        password_hash=hash_password(payload.password),
        name=payload.owner_name.strip(),
        phone=payload.owner_phone,
        role=Role.OWNER,
        hourly_rate=settings.default_hourly_rate,
        holiday_rate=settings.default_holiday_rate,
    )
    db.add(owner)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict("Company code already in use.") from exc
    db.refresh(company)
    db.refresh(owner)
    logger.info("company_registered", extra={"company_id": company.id, "user_id": owner.id})
    return company, owner


def register_user(db: Session, payload: RegisterRequest) -> User:
    """Self-registration joins an existing company as ``staff``."""
    company = find_company_by_code(db, payload.company_code)
    if company is None:
        raise validation_error("Invalid company code.")

    if find_company_user(db, company.id, payload.email) is not None:
        raise conflict("Email already exists in this company.")

    if payload.market_id is not None:
        market = db.get(Market, payload.market_id)
        if market is None or market.company_id != company.id:
            raise validation_error("Invalid market.")

    settings = get_settings()
    user = User(
        email=normalize_email(payload.email),
        company_id=company.id,
        password_hash=hash_password(payload.password),
        name=payload.name.strip(),
        phone=payload.phone,
        role=Role.STAFF,
        market_id=payload.market_id,
        hourly_rate=settings.default_hourly_rate,
        holiday_rate=settings.default_holiday_rate,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict("Email already exists in this company.") from exc
    db.refresh(user)
    logger.info("user_registered", extra={"user_id": user.id, "company_id": company.id})
    return user


def change_password(db: Session, user: User, *, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise ApiError(status_code=400, code="INVALID_PASSWORD", message="Current password is incorrect.")
    user.password_hash = hash_password(new_password)
    db.commit()
