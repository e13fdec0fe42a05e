from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database import Base
import enum
import uuid


def generate_uuid() -> str:
    return str(uuid.uuid4())

# =====================================================
# ENUMS
# =====================================================

class UserRole(str, enum.Enum):
    CLIENT = "CLIENT"
    AGENT = "AGENT"
    ADMIN = "ADMIN"

class ServiceType(str, enum.Enum):
    STUDENT_VISA = "STUDENT_VISA"
    WORK_PERMIT = "WORK_PERMIT"
    FAMILY_REUNIFICATION = "FAMILY_REUNIFICATION"
    TOURIST_VISA = "TOURIST_VISA"
    BUSINESS_VISA = "BUSINESS_VISA"
    PERMANENT_RESIDENCY = "PERMANENT_RESIDENCY"

class CaseStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    DOCUMENTS_REQUIRED = "DOCUMENTS_REQUIRED"
    PROCESSING = "PROCESSING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CLOSED = "CLOSED"

class Priority(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"

class DocumentType(str, enum.Enum):
    PASSPORT = "PASSPORT"
    ID_CARD = "ID_CARD"
    BIRTH_CERTIFICATE = "BIRTH_CERTIFICATE"
    MARRIAGE_CERTIFICATE = "MARRIAGE_CERTIFICATE"
    DIPLOMA = "DIPLOMA"
    EMPLOYMENT_LETTER = "EMPLOYMENT_LETTER"
    BANK_STATEMENT = "BANK_STATEMENT"
    PROOF_OF_RESIDENCE = "PROOF_OF_RESIDENCE"
    PHOTO = "PHOTO"
    OTHER = "OTHER"

class DocumentStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class NotificationType(str, enum.Enum):
    CASE_STATUS_UPDATE = "CASE_STATUS_UPDATE"
    NEW_MESSAGE = "NEW_MESSAGE"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    DOCUMENT_VERIFIED = "DOCUMENT_VERIFIED"
    DOCUMENT_REJECTED = "DOCUMENT_REJECTED"
    CASE_ASSIGNED = "CASE_ASSIGNED"
    SYSTEM_ANNOUNCEMENT = "SYSTEM_ANNOUNCEMENT"
    APPOINTMENT_SCHEDULED = "APPOINTMENT_SCHEDULED"

class TransferReason(str, enum.Enum):
    REASSIGNMENT = "REASSIGNMENT"
    COVERAGE = "COVERAGE"
    SPECIALIZATION = "SPECIALIZATION"
    WORKLOAD = "WORKLOAD"
    OTHER = "OTHER"

class MessageType(str, enum.Enum):
    CHAT = "CHAT"
    EMAIL = "EMAIL"

class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    REFUNDED = "REFUNDED"

class LegalDocumentType(str, enum.Enum):
    PRIVACY = "PRIVACY"
    TERMS = "TERMS"

class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    RESCHEDULED = "RESCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

# =====================================================
# USERS
# =====================================================

class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.CLIENT, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    google_id = Column(String(50), unique=True, nullable=True)
    push_token = Column(String(255), nullable=True)
    last_login = Column(DateTime, nullable=True)
    # Only SHA-256 digests of emailed tokens are stored
    verification_token_hash = Column(String(64), nullable=True, index=True)
    reset_token_hash = Column(String(64), nullable=True, index=True)
    reset_token_expires = Column(DateTime, nullable=True)
    data_export_requests = Column(Integer, default=0, nullable=False)
    last_data_export = Column(DateTime, nullable=True)
    deletion_scheduled_for = Column(DateTime, nullable=True)
    deletion_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    cases_as_client = relationship("Case", foreign_keys="Case.client_id", back_populates="client")
    cases_as_agent = relationship("Case", foreign_keys="Case.assigned_agent_id", back_populates="assigned_agent")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="user")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

# =====================================================
# CASES
# =====================================================

class Case(Base):
    __tablename__ = "cases"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    reference_number = Column(String(50), unique=True, nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    assigned_agent_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    service_type = Column(Enum(ServiceType), nullable=False)
    status = Column(Enum(CaseStatus), default=CaseStatus.SUBMITTED, nullable=False)
    priority = Column(Enum(Priority), default=Priority.NORMAL, nullable=False)
    submission_date = Column(DateTime, default=datetime.utcnow)
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    internal_notes = Column(Text, nullable=True)
    estimated_completion = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Relationships
    client = relationship("User", foreign_keys=[client_id], back_populates="cases_as_client")
    assigned_agent = relationship("User", foreign_keys=[assigned_agent_id], back_populates="cases_as_agent")
    documents = relationship("Document", back_populates="case", cascade="all, delete-orphan")
    status_history = relationship("StatusHistory", back_populates="case", cascade="all, delete-orphan")
    transfers = relationship("TransferHistory", back_populates="case", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="case")
    appointments = relationship("Appointment", back_populates="case", cascade="all, delete-orphan")

class StatusHistory(Base):
    __tablename__ = "status_history"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(CaseStatus), nullable=False)
    changed_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    notes = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow)

    case = relationship("Case", back_populates="status_history")
    changed_by_user = relationship("User")

class TransferHistory(Base):
    __tablename__ = "transfer_history"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    from_agent_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    from_agent_name = Column(String(255), nullable=True)
    to_agent_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    to_agent_name = Column(String(255), nullable=False)
    transferred_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    reason = Column(Enum(TransferReason), nullable=False)
    handover_notes = Column(Text, nullable=True)
    notify_client = Column(Boolean, default=True)
    notify_agent = Column(Boolean, default=True)
    transferred_at = Column(DateTime, default=datetime.utcnow)

    case = relationship("Case", back_populates="transfers")

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    assigned_agent_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    scheduled_at = Column(DateTime, nullable=False, index=True)
    location = Column(String(255), nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(Enum(AppointmentStatus), default=AppointmentStatus.SCHEDULED, nullable=False, index=True)
    reminder_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    case = relationship("Case", back_populates="appointments")
    client = relationship("User", foreign_keys=[client_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
    assigned_agent = relationship("User", foreign_keys=[assigned_agent_id])

# =====================================================
# DOCUMENTS & TEMPLATES
# =====================================================

class Document(Base):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    uploaded_by_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_key = Column(String(255), nullable=True)
    file_size = Column(Integer, default=0)
    mime_type = Column(String(100), nullable=False)
    document_type = Column(Enum(DocumentType), nullable=False)
    status = Column(Enum(DocumentStatus), default=DocumentStatus.PENDING, nullable=False)
    upload_date = Column(DateTime, default=datetime.utcnow)
    verified_by = Column(String(36), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    rejected_by = Column(String(36), nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    case = relationship("Case", back_populates="documents")
    uploaded_by = relationship("User")

class DocumentTemplate(Base):
    __tablename__ = "document_templates"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    service_type = Column(Enum(ServiceType), nullable=True)
    file_url = Column(String(500), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, default=0)
    mime_type = Column(String(100), nullable=True)
    category = Column(String(100), nullable=False)
    is_required = Column(Boolean, default=False)
    download_count = Column(Integer, default=0)
    version = Column(String(20), default="1.0")
    is_active = Column(Boolean, default=True)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

# =====================================================
# MESSAGING & NOTIFICATIONS
# =====================================================

class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    sender_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    recipient_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True, index=True)
    subject = Column(String(255), nullable=True)
    content = Column(Text, nullable=False)
    message_type = Column(Enum(MessageType), default=MessageType.CHAT, nullable=False)
    email_thread_id = Column(String(100), nullable=True, index=True)
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, default=datetime.utcnow)
    attachments = Column(JSON, nullable=True)

    sender = relationship("User", foreign_keys=[sender_id])
    recipient = relationship("User", foreign_keys=[recipient_id])
    case = relationship("Case", back_populates="messages")

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    type = Column(Enum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime, nullable=True)
    action_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="notifications")

# =====================================================
# ADMINISTRATION
# =====================================================

class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=False)
    ip_address = Column(String(100), nullable=True)
    user_agent = Column(String(500), nullable=True)
    details = Column("metadata", JSON, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User")

class InviteCode(Base):
    __tablename__ = "invite_codes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    code = Column(String(100), unique=True, nullable=False, index=True)
    role = Column(Enum(UserRole), nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    last_used_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    max_uses = Column(Integer, default=1, nullable=False)
    used_count = Column(Integer, default=0, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    purpose = Column(String(100), default="ADMIN_CREATED")
    last_used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    created_by = relationship("User", foreign_keys=[created_by_id])
    usages = relationship("InviteUsage", back_populates="invite_code", cascade="all, delete-orphan")

class InviteUsage(Base):
    __tablename__ = "invite_usages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    invite_code_id = Column(String(36), ForeignKey("invite_codes.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    used_at = Column(DateTime, default=datetime.utcnow)

    invite_code = relationship("InviteCode", back_populates="usages")

class FAQ(Base):
    __tablename__ = "faqs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    question = Column(String(500), unique=True, nullable=False)
    answer = Column(Text, nullable=False)
    category = Column(String(100), nullable=False)
    display_order = Column(Integer, default=0)
    language = Column(String(5), default="en")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class LegalDocument(Base):
    __tablename__ = "legal_documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    type = Column(Enum(LegalDocumentType), nullable=False, index=True)
    language = Column(String(5), default="en", nullable=False)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    version = Column(String(20), nullable=True)
    content = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True)
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

# =====================================================
# PAYMENTS
# =====================================================

class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    stripe_intent_id = Column(String(255), unique=True, nullable=False)
    amount = Column(Integer, nullable=False)  # cents
    currency = Column(String(10), default="usd")
    description = Column(String(500), nullable=False)
    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    case_number = Column(String(50), nullable=True)
    client_secret = Column(String(255), nullable=True)
    details = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="payments")
    refunds = relationship("Refund", back_populates="payment", cascade="all, delete-orphan")

class Refund(Base):
    __tablename__ = "refunds"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    payment_id = Column(String(36), ForeignKey("payments.id", ondelete="CASCADE"), nullable=False)
    stripe_refund_id = Column(String(255), unique=True, nullable=False)
    amount = Column(Integer, nullable=False)
    reason = Column(String(100), nullable=True)
    status = Column(String(50), nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    payment = relationship("Payment", back_populates="refunds")
