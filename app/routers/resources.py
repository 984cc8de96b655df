from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.errors import not_found
from app.models import (
    CashRegisterEntry,
    Contract,
    Notification,
    SalaryPayment,
    Schedule,
    SOSAlert,
    StaffRequest,
    StaffWarning,
    User,
)
from app.policy import require_route
from app.schemas import (
    CashRegisterCreate,
    CashRegisterRead,
    ContractCreate,
    ContractRead,
    ContractUpdate,
    NotificationRead,
    RequestCreate,
    RequestQueueItemRead,
    RequestRead,
    RequestStatusUpdate,
    SalaryOverviewRead,
    SalaryPaymentCreate,
    SalaryPaymentRead,
    ScheduleCreate,
    ScheduleRead,
    SOSCreate,
    SOSRead,
    SuccessResponse,
    WarningCreate,
    WarningRead,
)
from app.services.cash_register import list_entries, record_entry
from app.services.contracts import create_contract, list_contracts, update_contract
from app.services.notifications import list_notifications, mark_notification_read
from app.services.salary import record_payment, salary_overview, staff_salary_overview
from app.services.schedules import create_schedule, list_schedules
from app.services.sos import list_alerts, raise_alert, resolve_alert
from app.services.staff_requests import (
    create_request,
    delete_request,
    get_visible_request,
    list_requests,
    list_review_queue,
    review_request,
)
from app.services.users import active_contract
from app.services.warnings import issue_warning, list_warnings

router = APIRouter(tags=["resources"])


# Schedules


@router.get("/api/schedules", response_model=list[ScheduleRead])
def schedules(
    current_user: User = Depends(require_route("schedules.list")),
    db: Session = Depends(get_db),
) -> list[Schedule]:
    return list_schedules(db, current_user)


@router.post("/api/schedules", response_model=ScheduleRead)
def add_schedule(
    payload: ScheduleCreate,
    current_user: User = Depends(require_route("schedules.create")),
    db: Session = Depends(get_db),
) -> Schedule:
    return create_schedule(db, current_user, payload)


# Requests


@router.get("/api/requests", response_model=list[RequestRead])
def requests_list(
    current_user: User = Depends(require_route("requests.list")),
    db: Session = Depends(get_db),
) -> list[StaffRequest]:
    return list_requests(db, current_user)


@router.post("/api/requests", response_model=RequestRead)
def submit_request(
    payload: RequestCreate,
    current_user: User = Depends(require_route("requests.create")),
    db: Session = Depends(get_db),
) -> StaffRequest:
    return create_request(db, current_user, payload)


@router.get("/api/requests/{request_id}", response_model=RequestRead)
def read_request(
    request_id: int,
    current_user: User = Depends(require_route("requests.read")),
    db: Session = Depends(get_db),
) -> StaffRequest:
    return get_visible_request(db, current_user, request_id)


@router.api_route("/api/requests/{request_id}/status", methods=["PATCH", "PUT"], response_model=RequestRead)
def update_request_status(
    request_id: int,
    payload: RequestStatusUpdate,
    request: Request,
    current_user: User = Depends(require_route("requests.review")),
    db: Session = Depends(get_db),
) -> StaffRequest:
    staff_request = review_request(db, current_user, request_id, payload.status)
    audit_user_action(
        db,
        request,
        current_user,
        action="REQUEST_REVIEWED",
        entity_type="request",
        entity_id=staff_request.id,
        details={"status": payload.status.value},
    )
    db.refresh(staff_request)
    return staff_request


@router.delete("/api/requests/{request_id}", response_model=SuccessResponse)
def remove_request(
    request_id: int,
    request: Request,
    current_user: User = Depends(require_route("requests.delete")),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    delete_request(db, current_user, request_id)
    audit_user_action(db, request, current_user, action="REQUEST_DELETED", entity_type="request", entity_id=request_id)
    return SuccessResponse()


@router.get("/api/manager/requests", response_model=list[RequestQueueItemRead])
def manager_requests(
    current_user: User = Depends(require_route("manager.requests")),
    db: Session = Depends(get_db),
) -> list[RequestQueueItemRead]:
    return list_review_queue(db, current_user)


# Warnings


@router.get("/api/warnings", response_model=list[WarningRead])
def warnings_list(
    current_user: User = Depends(require_route("warnings.list")),
    db: Session = Depends(get_db),
) -> list[StaffWarning]:
    return list_warnings(db, current_user)


@router.post("/api/warnings", response_model=WarningRead)
def add_warning(
    payload: WarningCreate,
    request: Request,
    current_user: User = Depends(require_route("warnings.create")),
    db: Session = Depends(get_db),
) -> StaffWarning:
    warning = issue_warning(db, current_user, payload)
    audit_user_action(
        db,
        request,
        current_user,
        action="WARNING_ISSUED",
        entity_type="warning",
        entity_id=warning.id,
        details={"user_id": warning.user_id, "is_firing_notice": warning.is_firing_notice},
    )
    db.refresh(warning)
    return warning


# Cash register


@router.get("/api/cash-register", response_model=list[CashRegisterRead])
def cash_register(
    current_user: User = Depends(require_route("cash_register.list")),
    db: Session = Depends(get_db),
) -> list[CashRegisterEntry]:
    return list_entries(db, current_user)


@router.post("/api/cash-register", response_model=CashRegisterRead)
def add_cash_register_entry(
    payload: CashRegisterCreate,
    current_user: User = Depends(require_route("cash_register.create")),
    db: Session = Depends(get_db),
) -> CashRegisterEntry:
    return record_entry(db, current_user, payload)


# Contracts


@router.get("/api/contracts", response_model=list[ContractRead])
def contracts(
    current_user: User = Depends(require_route("contracts.list")),
    db: Session = Depends(get_db),
) -> list[Contract]:
    return list_contracts(db, current_user)


@router.get("/api/contracts/current", response_model=ContractRead)
def current_contract(
    current_user: User = Depends(require_route("contracts.current")),
    db: Session = Depends(get_db),
) -> Contract:
    contract = active_contract(db, current_user.id)
    if contract is None:
        raise not_found("Contract")
    return contract


@router.post("/api/contracts", response_model=ContractRead)
def add_contract(
    payload: ContractCreate,
    request: Request,
    current_user: User = Depends(require_route("contracts.create")),
    db: Session = Depends(get_db),
) -> Contract:
    contract = create_contract(db, current_user, payload)
    audit_user_action(
        db,
        request,
        current_user,
        action="CONTRACT_CREATED",
        entity_type="contract",
        entity_id=contract.id,
        details={"user_id": contract.user_id},
    )
    db.refresh(contract)
    return contract


@router.put("/api/contracts/{contract_id}", response_model=ContractRead)
def edit_contract(
    contract_id: int,
    payload: ContractUpdate,
    request: Request,
    current_user: User = Depends(require_route("contracts.update")),
    db: Session = Depends(get_db),
) -> Contract:
    contract = update_contract(db, current_user, contract_id, payload)
    audit_user_action(db, request, current_user, action="CONTRACT_UPDATED", entity_type="contract", entity_id=contract.id)
    db.refresh(contract)
    return contract


# SOS


@router.post("/api/sos", response_model=SOSRead)
def trigger_sos(
    payload: SOSCreate,
    request: Request,
    current_user: User = Depends(require_route("sos.create")),
    db: Session = Depends(get_db),
) -> SOSAlert:
    alert, notified = raise_alert(db, current_user, payload)
    audit_user_action(
        db,
        request,
        current_user,
        action="SOS_RAISED",
        entity_type="sos_alert",
        entity_id=alert.id,
        details={"type": payload.type.value, "notified": notified},
    )
    db.refresh(alert)
    return alert


@router.get("/api/sos", response_model=list[SOSRead])
def sos_alerts(
    current_user: User = Depends(require_route("sos.list")),
    db: Session = Depends(get_db),
) -> list[SOSAlert]:
    return list_alerts(db, current_user)


@router.patch("/api/sos/{alert_id}/resolve", response_model=SOSRead)
def resolve_sos(
    alert_id: int,
    request: Request,
    current_user: User = Depends(require_route("sos.resolve")),
    db: Session = Depends(get_db),
) -> SOSAlert:
    alert = resolve_alert(db, current_user, alert_id)
    audit_user_action(db, request, current_user, action="SOS_RESOLVED", entity_type="sos_alert", entity_id=alert.id)
    db.refresh(alert)
    return alert


# Salary


@router.get("/api/salary/me", response_model=SalaryOverviewRead)
def my_salary(
    current_user: User = Depends(require_route("salary.me")),
    db: Session = Depends(get_db),
) -> SalaryOverviewRead:
    return salary_overview(db, current_user)


@router.get("/api/salary/staff/{user_id}", response_model=SalaryOverviewRead)
def staff_salary(
    user_id: int,
    current_user: User = Depends(require_route("salary.staff")),
    db: Session = Depends(get_db),
) -> SalaryOverviewRead:
    return staff_salary_overview(db, current_user, user_id)


@router.post("/api/salary/payments", response_model=SalaryPaymentRead)
def add_salary_payment(
    payload: SalaryPaymentCreate,
    request: Request,
    current_user: User = Depends(require_route("salary.payments.create")),
    db: Session = Depends(get_db),
) -> SalaryPayment:
    payment = record_payment(db, current_user, payload)
    audit_user_action(
        db,
        request,
        current_user,
        action="SALARY_PAYMENT_RECORDED",
        entity_type="salary_payment",
        entity_id=payment.id,
        details={"user_id": payment.user_id, "amount": str(payment.amount), "period": payment.period},
    )
    db.refresh(payment)
    return payment


# Notifications


@router.get("/api/notifications", response_model=list[NotificationRead])
def notifications(
    current_user: User = Depends(require_route("notifications.list")),
    db: Session = Depends(get_db),
) -> list[Notification]:
    return list_notifications(db, current_user.id)


@router.patch("/api/notifications/{notification_id}/read", response_model=NotificationRead)
def read_notification(
    notification_id: int,
    current_user: User = Depends(require_route("notifications.read")),
    db: Session = Depends(get_db),
) -> Notification:
    return mark_notification_read(db, current_user.id, notification_id)
