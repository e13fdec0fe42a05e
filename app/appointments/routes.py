from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload
from datetime import datetime, timedelta
import logging

from app.database import get_db
from app.models import Appointment, AppointmentStatus, CaseStatus, NotificationType, User, UserRole
from app.appointments.schemas import AppointmentCreate, AppointmentData, AppointmentListData
from app.auth.dependencies import get_current_user, require_agent_or_admin
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, success_response
from app.integrations import email
from app.services.case_service import CaseService
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Appointments"], dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))])

# appointments that started a few minutes ago still count as upcoming
UPCOMING_GRACE = timedelta(minutes=5)
ACTIVE_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.RESCHEDULED)


def with_relationships(query):
    return query.options(
        joinedload(Appointment.case),
        joinedload(Appointment.assigned_agent),
        joinedload(Appointment.created_by),
    )


def ensure_agent_is_assigned(case, user: User) -> None:
    if user.role == UserRole.AGENT and case.assigned_agent_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to perform this action"
        )

# =====================================================
# CASE APPOINTMENTS
# =====================================================

@router.get("/cases/{case_id}/appointments", response_model=ApiResponse[AppointmentListData])
async def list_case_appointments(
    case_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    service.ensure_can_view(case, current_user)
    ensure_agent_is_assigned(case, current_user)

    appointments = (
        with_relationships(db.query(Appointment))
        .filter(Appointment.case_id == case.id)
        .order_by(Appointment.scheduled_at.asc())
        .all()
    )
    return success_response({"appointments": appointments}, "Appointments retrieved successfully")


@router.post(
    "/cases/{case_id}/appointments",
    response_model=ApiResponse[AppointmentData],
    status_code=status.HTTP_201_CREATED,
)
async def schedule_appointment(
    case_id: str,
    payload: AppointmentCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    """Schedule an in-office appointment for an approved case and tell the client."""
    scheduled_at = payload.scheduled_at
    if scheduled_at.tzinfo is not None:
        scheduled_at = scheduled_at.replace(tzinfo=None) - scheduled_at.utcoffset()
    if scheduled_at <= datetime.utcnow():
        raise HTTPException(status_code=400, detail="Appointment must be scheduled in the future")

    location = payload.location.strip()
    if not location:
        raise HTTPException(status_code=400, detail="Location is required")
    notes = payload.notes.strip() if payload.notes else None

    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    if case.status != CaseStatus.APPROVED:
        raise HTTPException(status_code=400, detail="Appointments can only be scheduled for approved cases")
    ensure_agent_is_assigned(case, current_user)

    if payload.assigned_agent_id:
        advisor = db.query(User).filter(User.id == payload.assigned_agent_id).first()
        if not advisor:
            raise HTTPException(status_code=400, detail="Assigned agent not found")
        if advisor.role not in (UserRole.AGENT, UserRole.ADMIN):
            raise HTTPException(status_code=400, detail="Assigned agent must be an agent or admin user")
    else:
        advisor = case.assigned_agent or current_user

    appointment = Appointment(
        case_id=case.id,
        client_id=case.client_id,
        created_by_id=current_user.id,
        assigned_agent_id=advisor.id,
        scheduled_at=scheduled_at,
        location=location,
        notes=notes or None,
    )
    db.add(appointment)
    db.commit()
    appointment = with_relationships(db.query(Appointment)).filter(Appointment.id == appointment.id).first()

    client = case.client
    when = scheduled_at.strftime("%Y-%m-%d %H:%M")
    notifier = NotificationService(db, background_tasks)
    notifier.notify(
        client,
        NotificationType.APPOINTMENT_SCHEDULED,
        "Appointment Scheduled",
        f"An appointment for case {case.reference_number} is scheduled on {when} UTC at {location}",
        case_id=case.id,
        action_url="/dashboard/appointments",
        send_push=True,
    )
    notifier.email(
        "Appointment email", email.send_appointment_scheduled_email,
        client.email, case.reference_number, when, location, client.full_name, advisor.full_name, notes,
    )

    logger.info(f"Appointment {appointment.id} scheduled for case {case.id} by {current_user.id}")
    return success_response({"appointment": appointment}, "Appointment scheduled successfully")


@router.get("/appointments/upcoming", response_model=ApiResponse[AppointmentData])
async def get_upcoming_appointment(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Next scheduled appointment visible to the caller, if any."""
    query = with_relationships(db.query(Appointment)).filter(
        Appointment.status.in_(ACTIVE_STATUSES),
        Appointment.scheduled_at >= datetime.utcnow() - UPCOMING_GRACE,
    )
    if current_user.role == UserRole.CLIENT:
        query = query.filter(Appointment.client_id == current_user.id)
    elif current_user.role == UserRole.AGENT:
        query = query.filter(Appointment.assigned_agent_id == current_user.id)

    appointment = query.order_by(Appointment.scheduled_at.asc()).first()
    if appointment is None:
        return success_response({"appointment": None}, "No upcoming appointments")
    return success_response({"appointment": appointment}, "Upcoming appointment retrieved successfully")
