from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, desc
from typing import List, Optional, Tuple
from datetime import datetime
import logging
import secrets
import string
import time

from fastapi import HTTPException, status

from app.models import Case, CaseStatus, Priority, StatusHistory, TransferHistory, TransferReason, User, UserRole
from app.cases.schemas import CaseCreate

logger = logging.getLogger(__name__)

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
MAX_NOTE_LENGTH = 10000
MAX_BULK_CASES = 100


def humanize(value: str) -> str:
    return value.replace("_", " ").lower()


class CaseService:
    def __init__(self, db: Session):
        self.db = db

    def generate_reference_number(self) -> str:
        """Generate a unique case reference: PT-<epoch ms>-<6 random chars>."""
        suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(6))
        return f"PT-{int(time.time() * 1000)}-{suffix}"

    def create_case(self, case_data: CaseCreate, client: User) -> Case:
        """Create a new case for ``client`` and record its initial status."""
        db_case = Case(
            reference_number=self.generate_reference_number(),
            client_id=client.id,
            service_type=case_data.service_type,
            priority=case_data.priority,
            status=CaseStatus.SUBMITTED,
        )
        self.db.add(db_case)
        self.db.flush()
        self.db.add(StatusHistory(
            case_id=db_case.id,
            status=CaseStatus.SUBMITTED,
            changed_by=client.id,
            notes="Case submitted",
        ))
        return db_case

    def get_case_with_relationships(self, case_id: str) -> Optional[Case]:
        """Get case with client and agent loaded."""
        return self.db.query(Case).options(
            joinedload(Case.client),
            joinedload(Case.assigned_agent)
        ).filter(Case.id == case_id).first()

    def get_case_or_404(self, case_id: str) -> Case:
        case = self.db.query(Case).filter(Case.id == case_id).first()
        if not case:
            raise HTTPException(status_code=404, detail="Case not found")
        return case

    def ensure_can_view(self, case: Case, user: User) -> None:
        """Clients may only see their own cases."""
        if user.role == UserRole.CLIENT and case.client_id != user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action"
            )

    def get_cases_for_user(
        self,
        user: User,
        offset: int = 0,
        limit: int = 10,
        status_filter: Optional[CaseStatus] = None,
        service_type=None,
        priority: Optional[Priority] = None,
        client_id: Optional[str] = None,
        assigned_agent_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Case], int]:
        """Get a page of cases with role-based filtering, plus the total count."""
        query = self.db.query(Case)

        if user.role == UserRole.CLIENT:
            query = query.filter(Case.client_id == user.id)
        else:
            if client_id:
                query = query.filter(Case.client_id == client_id)
            if assigned_agent_id:
                query = query.filter(Case.assigned_agent_id == assigned_agent_id)

        if status_filter:
            query = query.filter(Case.status == status_filter)
        if service_type:
            query = query.filter(Case.service_type == service_type)
        if priority:
            query = query.filter(Case.priority == priority)
        if search:
            query = query.filter(Case.reference_number.ilike(f"%{search}%"))

        total = query.count()
        cases = query.options(
            joinedload(Case.client),
            joinedload(Case.assigned_agent)
        ).order_by(desc(Case.submission_date)).offset(offset).limit(limit).all()
        return cases, total

    def apply_status(self, case: Case, new_status: CaseStatus, changed_by: User, notes: Optional[str] = None) -> None:
        """Set the status, stamp approval/completion times and record history."""
        case.status = new_status
        if new_status == CaseStatus.APPROVED:
            case.approved_at = datetime.utcnow()
        elif new_status == CaseStatus.CLOSED:
            case.completed_at = datetime.utcnow()
        self.db.add(StatusHistory(case_id=case.id, status=new_status, changed_by=changed_by.id, notes=notes))

    def append_note(self, case: Case, note: str, author: User) -> None:
        note = (note or "").strip()
        if not note:
            raise HTTPException(status_code=400, detail="Note cannot be empty")
        if len(note) > MAX_NOTE_LENGTH:
            raise HTTPException(status_code=400, detail=f"Note cannot exceed {MAX_NOTE_LENGTH} characters")
        entry = f"[{datetime.utcnow().isoformat()}] {author.id}:\n{note}"
        case.internal_notes = f"{case.internal_notes}\n\n{entry}" if case.internal_notes else entry

    def get_valid_agent(self, agent_id: str) -> User:
        """Return an active AGENT or raise 400."""
        agent = self.db.query(User).filter(User.id == agent_id).first()
        if not agent or agent.role != UserRole.AGENT:
            raise HTTPException(status_code=400, detail="Invalid agent ID or user is not an agent")
        if not agent.is_active:
            raise HTTPException(status_code=400, detail="Cannot assign case to an inactive agent")
        return agent

    def ensure_assignable(self, case: Case, agent_id: str) -> User:
        """Precondition checks shared by assign and transfer."""
        if case.status == CaseStatus.CLOSED:
            raise HTTPException(status_code=400, detail="Cannot assign a closed case")
        agent = self.get_valid_agent(agent_id)
        if case.assigned_agent_id == agent.id:
            raise HTTPException(status_code=409, detail="Case is already assigned to this agent")
        return agent

    def assign_agent(self, case: Case, agent: User, assigned_by: User) -> None:
        case.assigned_agent_id = agent.id
        if case.status == CaseStatus.SUBMITTED:
            self.apply_status(case, CaseStatus.UNDER_REVIEW, assigned_by, f"Assigned to {agent.full_name}")

    def transfer_case(
        self,
        case: Case,
        new_agent: User,
        transferred_by: User,
        reason: TransferReason,
        handover_notes: Optional[str],
        notify_client: bool,
        notify_agent: bool,
    ) -> TransferHistory:
        """Reassign the case, record the transfer and leave a handover note, in one transaction."""
        previous_agent = case.assigned_agent
        from_name = previous_agent.full_name if previous_agent else "Unassigned"

        transfer = TransferHistory(
            case_id=case.id,
            from_agent_id=previous_agent.id if previous_agent else None,
            from_agent_name=from_name if previous_agent else None,
            to_agent_id=new_agent.id,
            to_agent_name=new_agent.full_name,
            transferred_by=transferred_by.id,
            reason=reason,
            handover_notes=handover_notes,
            notify_client=notify_client,
            notify_agent=notify_agent,
        )
        note = f"Case transferred from {from_name} to {new_agent.full_name}. Reason: {reason.value}"
        if handover_notes:
            note += f"\n\nHandover Notes: {handover_notes}"

        try:
            case.assigned_agent_id = new_agent.id
            case.internal_notes = f"{case.internal_notes}\n\n{note}" if case.internal_notes else note
            self.db.add(transfer)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(transfer)
        return transfer

    def get_case_stats(self, user: User) -> dict:
        """Count cases by status and priority within the caller's scope."""
        query = self.db.query(Case)
        if user.role == UserRole.CLIENT:
            query = query.filter(Case.client_id == user.id)
        elif user.role == UserRole.AGENT:
            query = query.filter(Case.assigned_agent_id == user.id)

        by_status = {s.value: 0 for s in CaseStatus}
        for case_status, count in query.with_entities(Case.status, func.count(Case.id)).group_by(Case.status).all():
            by_status[case_status.value] = count

        by_priority = {p.value: 0 for p in Priority}
        for case_priority, count in query.with_entities(Case.priority, func.count(Case.id)).group_by(Case.priority).all():
            by_priority[case_priority.value] = count

        return {
            "total": query.count(),
            "unassigned": query.filter(Case.assigned_agent_id.is_(None)).count(),
            "by_status": by_status,
            "by_priority": by_priority,
        }
