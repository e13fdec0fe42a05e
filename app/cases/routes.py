from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy import desc, or_
from datetime import datetime
from typing import Optional
import csv
import io
import logging

from app.database import get_db
from app.models import (
    Case, CaseStatus, NotificationType, Priority, ServiceType, StatusHistory, TransferHistory, User, UserRole
)
from app.cases.schemas import (
    BulkCaseOperation, BulkResultData, CaseAssign, CaseCreate, CaseData, CaseListData, CaseNoteCreate,
    CasePriorityUpdate, CaseStatusUpdate, CaseTransfer, CaseTransferData, CaseUpdate,
    DocumentRequest, EstimatedCompletionUpdate, StatusHistoryData, TransferHistoryData
)
from app.auth.dependencies import get_current_user, require_admin, require_agent_or_admin
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, paginate, resolve_pagination, success_response
from app.integrations import email, firebase
from app.services.activity_service import record_activity
from app.services.case_service import CaseService, MAX_BULK_CASES, humanize
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cases", tags=["Cases"], dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))])

CASE_EXPORT_LIMIT = 1000


def notify_client_of_status(notifier: NotificationService, case: Case, new_status: CaseStatus) -> None:
    client = case.client
    readable = humanize(new_status.value)
    notifier.email(
        "Case status email", email.send_case_status_email,
        client.email, case.reference_number, readable, client.full_name,
    )
    notifier.notify(
        client,
        NotificationType.CASE_STATUS_UPDATE,
        "Case Status Updated",
        f"Your case {case.reference_number} is now {readable}",
        case_id=case.id,
        action_url=f"/dashboard/cases/{case.id}",
        send_push=True,
    )

# =====================================================
# CASE CRUD OPERATIONS
# =====================================================

@router.get("", response_model=ApiResponse[CaseListData])
async def list_cases(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    status: Optional[CaseStatus] = None,
    service_type: Optional[ServiceType] = None,
    priority: Optional[Priority] = None,
    client_id: Optional[str] = None,
    assigned_agent_id: Optional[str] = None,
    search: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List cases with filtering and pagination."""
    page, limit, offset = resolve_pagination(page, limit)
    cases, total = CaseService(db).get_cases_for_user(
        current_user,
        offset=offset,
        limit=limit,
        status_filter=status,
        service_type=service_type,
        priority=priority,
        client_id=client_id,
        assigned_agent_id=assigned_agent_id,
        search=search,
    )
    return success_response(
        {"cases": cases, "pagination": paginate(page, limit, total)},
        "Cases retrieved successfully",
    )

@router.post("", response_model=ApiResponse[CaseData], status_code=status.HTTP_201_CREATED)
async def create_case(
    case_data: CaseCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a new case for the current user."""
    service = CaseService(db)
    db_case = service.create_case(case_data, current_user)
    record_activity(
        db, current_user.id, "CASE_CREATED", f"Created case {db_case.reference_number}", request,
        {"caseId": db_case.id},
    )
    db.commit()

    logger.info(f"Case {db_case.reference_number} created by {current_user.id}")
    return success_response({"case": service.get_case_with_relationships(db_case.id)}, "Case submitted successfully")

@router.get("/export", dependencies=[Depends(rate_limit(RateLimitPresets.STRICT))])
async def export_cases(
    status: Optional[CaseStatus] = None,
    service_type: Optional[ServiceType] = None,
    assigned_agent_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    """Download the filtered case list as CSV. Agents only see their own assignments."""
    query = db.query(Case).join(User, Case.client_id == User.id)
    if current_user.role == UserRole.AGENT:
        query = query.filter(Case.assigned_agent_id == current_user.id)
    elif assigned_agent_id:
        query = query.filter(Case.assigned_agent_id == assigned_agent_id)

    if status:
        query = query.filter(Case.status == status)
    if service_type:
        query = query.filter(Case.service_type == service_type)
    if start_date:
        query = query.filter(Case.submission_date >= start_date)
    if end_date:
        query = query.filter(Case.submission_date <= end_date)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Case.reference_number.ilike(pattern),
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
        ))

    cases = query.options(
        joinedload(Case.client),
        joinedload(Case.assigned_agent),
        selectinload(Case.documents),
    ).order_by(desc(Case.submission_date)).limit(CASE_EXPORT_LIMIT).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([
        "Reference Number", "Customer Name", "Customer Email", "Service Type", "Status", "Priority",
        "Submission Date", "Last Updated", "Assigned Agent", "Documents Count",
    ])
    for case in cases:
        writer.writerow([
            case.reference_number,
            case.client.full_name,
            case.client.email,
            case.service_type.value,
            case.status.value,
            case.priority.value,
            case.submission_date.strftime("%Y-%m-%d") if case.submission_date else "",
            case.last_updated.strftime("%Y-%m-%d") if case.last_updated else "",
            case.assigned_agent.full_name if case.assigned_agent else "Unassigned",
            len(case.documents),
        ])
    buffer.seek(0)

    logger.info(f"{len(cases)} cases exported by {current_user.id}")
    filename = f"cases-export-{datetime.utcnow().strftime('%Y-%m-%d')}.csv"
    return StreamingResponse(
        iter([buffer.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@router.get("/{case_id}", response_model=ApiResponse[CaseData])
async def get_case(
    case_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get a specific case by ID."""
    service = CaseService(db)
    case = service.get_case_with_relationships(case_id)
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")
    service.ensure_can_view(case, current_user)
    return success_response({"case": case}, "Case retrieved successfully")

@router.put("/{case_id}", response_model=ApiResponse[CaseData])
async def update_case(
    case_id: str,
    case_update: CaseUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update a case. Clients may only change the service type of their own cases."""
    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    service.ensure_can_view(case, current_user)

    update_data = case_update.dict(exclude_unset=True, exclude_none=True)
    if current_user.role == UserRole.CLIENT and set(update_data) - {"service_type"}:
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action")

    new_status = update_data.pop("status", None)
    for field, value in update_data.items():
        setattr(case, field, value)
    if new_status and new_status != case.status:
        service.apply_status(case, new_status, current_user)
    db.commit()

    return success_response({"case": service.get_case_with_relationships(case_id)}, "Case updated successfully")

@router.delete("/{case_id}", response_model=ApiResponse[dict])
async def delete_case(
    case_id: str,
    request: Request,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    """Delete a case (admin only)."""
    case = CaseService(db).get_case_or_404(case_id)
    reference = case.reference_number
    db.delete(case)
    record_activity(db, current_user.id, "CASE_DELETED", f"Deleted case {reference}", request, {"caseId": case_id})
    db.commit()

    logger.info(f"Case {reference} deleted by {current_user.id}")
    return success_response({}, "Case deleted successfully")

# =====================================================
# CASE WORKFLOW OPERATIONS
# =====================================================

@router.patch("/{case_id}/status", response_model=ApiResponse[CaseData])
async def update_case_status(
    case_id: str,
    payload: CaseStatusUpdate,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    service.apply_status(case, payload.status, current_user, payload.notes)
    record_activity(
        db, current_user.id, "CASE_STATUS_UPDATED",
        f"Case {case.reference_number} status changed to {payload.status.value}", request,
        {"caseId": case.id, "status": payload.status.value},
    )
    db.commit()

    case = service.get_case_with_relationships(case_id)
    notify_client_of_status(NotificationService(db, background_tasks), case, payload.status)

    logger.info(f"Case {case.reference_number} moved to {payload.status.value} by {current_user.id}")
    return success_response({"case": service.get_case_with_relationships(case_id)}, "Case status updated successfully")

@router.patch("/{case_id}/notes", response_model=ApiResponse[CaseData])
async def add_internal_note(
    case_id: str,
    payload: CaseNoteCreate,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    service.append_note(case, payload.note, current_user)
    db.commit()
    return success_response({"case": service.get_case_with_relationships(case_id)}, "Note added successfully")

@router.patch("/{case_id}/priority", response_model=ApiResponse[CaseData])
async def update_case_priority(
    case_id: str,
    payload: CasePriorityUpdate,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    case.priority = payload.priority
    db.commit()
    return success_response({"case": service.get_case_with_relationships(case_id)}, "Case priority updated successfully")

@router.patch("/{case_id}/estimated-completion", response_model=ApiResponse[CaseData])
async def update_estimated_completion(
    case_id: str,
    payload: EstimatedCompletionUpdate,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    estimated = payload.estimated_completion
    if estimated is not None and estimated.tzinfo is not None:
        estimated = estimated.replace(tzinfo=None) - estimated.utcoffset()
    case.estimated_completion = estimated
    db.commit()
    return success_response(
        {"case": service.get_case_with_relationships(case_id)}, "Estimated completion date updated successfully"
    )

@router.get("/{case_id}/history", response_model=ApiResponse[StatusHistoryData])
async def get_case_history(
    case_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    service.ensure_can_view(case, current_user)

    history = db.query(StatusHistory).options(
        joinedload(StatusHistory.changed_by_user)
    ).filter(StatusHistory.case_id == case_id).order_by(desc(StatusHistory.timestamp)).all()
    return success_response({"history": history}, "Case history retrieved successfully")

@router.post("/{case_id}/request-documents", response_model=ApiResponse[CaseData])
async def request_documents(
    case_id: str,
    payload: DocumentRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    if not payload.document_types:
        raise HTTPException(status_code=400, detail="At least one document type is required")

    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    requested = [doc_type.value for doc_type in payload.document_types]
    notes = f"Documents requested: {', '.join(requested)}"
    if payload.message:
        notes += f"\n{payload.message}"
    service.apply_status(case, CaseStatus.DOCUMENTS_REQUIRED, current_user, notes)
    db.commit()

    case = service.get_case_with_relationships(case_id)
    notifier = NotificationService(db, background_tasks)
    notifier.email(
        "Documents requested email", email.send_documents_requested_email,
        case.client.email, case.reference_number, requested, case.client.full_name, payload.message,
    )
    notifier.notify(
        case.client,
        NotificationType.CASE_STATUS_UPDATE,
        "Documents Required",
        f"Additional documents are required for case {case.reference_number}: "
        f"{', '.join(humanize(d) for d in requested)}",
        case_id=case.id,
        action_url="/dashboard/documents",
        send_push=True,
    )
    return success_response({"case": service.get_case_with_relationships(case_id)}, "Documents requested successfully")

# =====================================================
# ASSIGNMENT & TRANSFER
# =====================================================

@router.patch("/{case_id}/assign", response_model=ApiResponse[CaseData])
async def assign_case(
    case_id: str,
    payload: CaseAssign,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    """Assign an agent to a case (admin only)."""
    if not payload.agent_id:
        raise HTTPException(status_code=400, detail="Agent ID is required")

    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    agent = service.ensure_assignable(case, payload.agent_id)
    service.assign_agent(case, agent, current_user)
    record_activity(
        db, current_user.id, "CASE_ASSIGNED",
        f"Assigned case {case.reference_number} to {agent.full_name}", request,
        {"caseId": case.id, "agentId": agent.id},
    )
    db.commit()

    case = service.get_case_with_relationships(case_id)
    notifier = NotificationService(db, background_tasks)
    notifier.notify(
        agent,
        NotificationType.CASE_ASSIGNED,
        "New Case Assigned",
        f"Case {case.reference_number} has been assigned to you",
        case_id=case.id,
        action_url=f"/dashboard/cases/{case.id}",
        send_push=True,
    )
    notifier.email(
        "Case assignment email", email.send_case_assigned_email,
        agent.email, case.reference_number, agent.full_name, case.client.full_name,
    )
    notifier.dispatch(
        "Chat room initialization", firebase.initialize_chat_room, case.client_id, agent.id, case.id, case.reference_number
    )

    logger.info(f"Case {case.reference_number} assigned to agent {agent.id} by {current_user.id}")
    return success_response({"case": service.get_case_with_relationships(case_id)}, "Case assigned successfully")

@router.post("/{case_id}/transfer", response_model=ApiResponse[CaseTransferData])
async def transfer_case(
    case_id: str,
    payload: CaseTransfer,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    """Transfer a case to another agent (admin only)."""
    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    new_agent = service.ensure_assignable(case, payload.new_agent_id)

    record_activity(
        db, current_user.id, "CASE_TRANSFERRED",
        f"Transferred case {case.reference_number} to {new_agent.full_name}", request,
        {"caseId": case.id, "toAgentId": new_agent.id, "reason": payload.reason.value},
    )
    transfer = service.transfer_case(
        case, new_agent, current_user, payload.reason, payload.handover_notes,
        payload.notify_client, payload.notify_agent,
    )

    case = service.get_case_with_relationships(case_id)
    notifier = NotificationService(db, background_tasks)
    emails_sent = {"client": False, "agent": False}
    if payload.notify_agent:
        notifier.notify(
            new_agent,
            NotificationType.CASE_ASSIGNED,
            "Case Transferred to You",
            f"Case {case.reference_number} has been transferred to you. Reason: {humanize(payload.reason.value)}",
            case_id=case.id,
            action_url=f"/dashboard/cases/{case.id}",
            send_push=True,
        )
        notifier.email(
            "Transfer agent email", email.send_case_assigned_email,
            new_agent.email, case.reference_number, new_agent.full_name, case.client.full_name,
        )
        emails_sent["agent"] = True
    if payload.notify_client:
        notifier.email(
            "Transfer client email", email.send_case_transferred_client_email,
            case.client.email, case.reference_number, new_agent.full_name, case.client.full_name,
        )
        emails_sent["client"] = True
    notifier.dispatch(
        "Chat room initialization", firebase.initialize_chat_room, case.client_id, new_agent.id, case.id, case.reference_number
    )

    logger.info(f"Case {case.reference_number} transferred to {new_agent.id} by {current_user.id}")
    return success_response(
        {"case": service.get_case_with_relationships(case_id), "transfer": transfer, "emails_sent": emails_sent},
        "Case transferred successfully",
    )

@router.get("/{case_id}/transfers", response_model=ApiResponse[TransferHistoryData])
async def get_transfer_history(
    case_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = CaseService(db)
    case = service.get_case_or_404(case_id)
    service.ensure_can_view(case, current_user)
    transfers = db.query(TransferHistory).filter(
        TransferHistory.case_id == case_id
    ).order_by(desc(TransferHistory.transferred_at)).all()
    return success_response({"transfers": transfers}, "Transfer history retrieved successfully")

# =====================================================
# BULK OPERATIONS
# =====================================================

@router.post(
    "/bulk",
    response_model=ApiResponse[BulkResultData],
    dependencies=[Depends(rate_limit(RateLimitPresets.STRICT))],
)
async def bulk_update_cases(
    payload: BulkCaseOperation,
    request: Request,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    """Assign, re-status or re-prioritise up to 100 cases at once (admin only)."""
    if not payload.case_ids:
        raise HTTPException(status_code=400, detail="Case IDs are required")
    if len(payload.case_ids) > MAX_BULK_CASES:
        raise HTTPException(status_code=400, detail=f"Cannot process more than {MAX_BULK_CASES} cases at once")

    service = CaseService(db)
    cases = db.query(Case).filter(Case.id.in_(payload.case_ids)).all()
    operation = payload.operation.upper()

    if operation == "ASSIGN":
        if not payload.assigned_agent_id:
            raise HTTPException(status_code=400, detail="Agent ID is required for assignment")
        agent = db.query(User).filter(User.id == payload.assigned_agent_id, User.role == UserRole.AGENT).first()
        if not agent:
            raise HTTPException(status_code=400, detail="Invalid agent ID or user is not an agent")
        for case in cases:
            case.assigned_agent_id = agent.id
            record_activity(
                db, current_user.id, "CASE_ASSIGNED",
                f"Bulk assigned case {case.reference_number} to {agent.full_name}", request,
                {"caseId": case.id, "agentId": agent.id, "bulk": True},
            )
        message = f"{len(cases)} cases assigned successfully"

    elif operation == "UPDATE_STATUS":
        try:
            new_status = CaseStatus(payload.status)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid status")
        for case in cases:
            previous = case.status
            service.apply_status(case, new_status, current_user, "Bulk status update")
            record_activity(
                db, current_user.id, "CASE_STATUS_UPDATED",
                f"Bulk status update of {case.reference_number} from {previous.value} to {new_status.value}",
                request,
                {"caseId": case.id, "from": previous.value, "to": new_status.value, "bulk": True},
            )
        message = f"{len(cases)} cases updated successfully"

    elif operation == "UPDATE_PRIORITY":
        try:
            new_priority = Priority(payload.priority)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid priority")
        for case in cases:
            case.priority = new_priority
        message = f"{len(cases)} cases updated successfully"

    else:
        raise HTTPException(status_code=400, detail="Invalid operation")

    db.commit()
    logger.info(f"Bulk {operation} on {len(cases)} cases by {current_user.id}")
    return success_response({"updated_count": len(cases)}, message)
