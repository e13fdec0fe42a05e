from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
import logging

from app.database import get_db
from app.models import FAQ, User
from app.faq.schemas import FAQCreate, FAQData, FAQListData, FAQUpdate
from app.auth.dependencies import require_admin
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/faq", tags=["FAQ"], dependencies=[Depends(rate_limit(RateLimitPresets.GENEROUS))])


def get_faq_or_404(db: Session, faq_id: str) -> FAQ:
    faq = db.query(FAQ).filter(FAQ.id == faq_id).first()
    if not faq:
        raise HTTPException(status_code=404, detail="FAQ not found")
    return faq


def ensure_unique_question(db: Session, question: str, exclude_id: str = None) -> None:
    query = db.query(FAQ).filter(FAQ.question == question)
    if exclude_id:
        query = query.filter(FAQ.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="An FAQ with this question already exists")

@router.get("", response_model=ApiResponse[FAQListData])
async def list_faqs(
    language: str = Query("en"),
    db: Session = Depends(get_db)
):
    faqs = db.query(FAQ).filter(
        FAQ.is_active.is_(True),
        FAQ.language == language
    ).order_by(FAQ.category, FAQ.display_order).all()
    categories = sorted({faq.category for faq in faqs})
    return success_response({"faqs": faqs, "categories": categories}, "FAQs retrieved successfully")

@router.post("", response_model=ApiResponse[FAQData], status_code=status.HTTP_201_CREATED)
async def create_faq(
    payload: FAQCreate,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    ensure_unique_question(db, payload.question)
    faq = FAQ(**payload.dict())
    db.add(faq)
    db.commit()
    db.refresh(faq)
    logger.info(f"FAQ {faq.id} created by {current_user.id}")
    return success_response({"faq": faq}, "FAQ created successfully")

@router.put("/{faq_id}", response_model=ApiResponse[FAQData])
async def update_faq(
    faq_id: str,
    payload: FAQUpdate,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    faq = get_faq_or_404(db, faq_id)
    update_data = payload.dict(exclude_unset=True, exclude_none=True)
    if "question" in update_data:
        ensure_unique_question(db, update_data["question"], exclude_id=faq.id)
    for field, value in update_data.items():
        setattr(faq, field, value)
    db.commit()
    db.refresh(faq)
    return success_response({"faq": faq}, "FAQ updated successfully")

@router.delete("/{faq_id}", response_model=ApiResponse[dict])
async def delete_faq(
    faq_id: str,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    faq = get_faq_or_404(db, faq_id)
    db.delete(faq)
    db.commit()
    logger.info(f"FAQ {faq_id} deleted by {current_user.id}")
    return success_response({}, "FAQ deleted successfully")
