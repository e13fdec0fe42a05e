import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from datetime import timedelta, datetime
from app.database import get_db
from app.models import User, UserRole
from app import config
from app.auth.schemas import (
    UserCreate, Token, UserData, GoogleLoginRequest,
    ForgotPasswordRequest, ResetPasswordRequest, VerifyEmailRequest, ResendVerificationRequest,
)
from app.auth.utils import (
    verify_password, get_password_hash, create_access_token, ACCESS_TOKEN_EXPIRE_MINUTES, GOOGLE_CLIENT_ID,
    generate_one_time_token, hash_token, is_strong_password,
)
from app.auth.dependencies import get_current_user
from app.core.errors import ApiError
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, success_response
from app.integrations import email as email_service
from app.services.activity_service import record_activity
from app.services.notification_service import NotificationService
from app.services.invite_service import validate_invite_code, consume_invite_code
from google.oauth2 import id_token
from google.auth.transport import requests as google_requests

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def issue_token(user: User) -> dict:
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user.email, "role": user.role.value},
        expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer", "role": user.role}


@router.post(
    "/register",
    response_model=ApiResponse[UserData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(RateLimitPresets.AUTH))],
)
def register_user(
    user_data: UserCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    email = user_data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise ApiError("Email already exists", status.HTTP_409_CONFLICT, code="EMAIL_EXISTS")

    invite = None
    role = UserRole.CLIENT
    if user_data.invite_code:
        invite = validate_invite_code(db, user_data.invite_code)
        role = invite.role

    db_user = User(
        email=email,
        password_hash=get_password_hash(user_data.password),
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        phone=user_data.phone,
        role=role,
        is_active=True,
    )
    verification_token, db_user.verification_token_hash = generate_one_time_token()
    try:
        db.add(db_user)
        db.flush()
        if invite is not None:
            consume_invite_code(db, invite, db_user.id)
        record_activity(db, db_user.id, "USER_REGISTERED", f"{email} registered as {role.value}", request)
        db.commit()
    except ApiError:
        db.rollback()
        raise
    db.refresh(db_user)

    NotificationService(db, background_tasks).email(
        "Verification email",
        email_service.send_verification_email,
        db_user.email,
        f"{config.APP_URL}/verify-email?token={verification_token}",
        db_user.first_name,
    )
    logger.info(f"User registered: {db_user.id} ({role.value})")
    return success_response({"user": db_user}, "Registration successful")


@router.post("/login", response_model=Token, dependencies=[Depends(rate_limit(RateLimitPresets.AUTH))])
def login_user(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == form_data.username.lower()).first()

    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    # Update last login
    user.last_login = datetime.utcnow()
    db.commit()

    return issue_token(user)


@router.post("/google-login", response_model=Token, dependencies=[Depends(rate_limit(RateLimitPresets.AUTH))])
def google_login(payload: GoogleLoginRequest, db: Session = Depends(get_db)):
    try:
        id_info = id_token.verify_oauth2_token(
            payload.id_token,
            google_requests.Request(),
            GOOGLE_CLIENT_ID
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid Google token"
        )

    email = (id_info.get("email") or "").lower()
    google_id = id_info.get("sub")
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Google account has no email"
        )

    # Find user by email or google_id
    user = (
        db.query(User)
        .filter((User.email == email) | (User.google_id == google_id))
        .first()
    )

    if not user:
        user = User(
            email=email,
            first_name=id_info.get("given_name") or email.split("@")[0],
            last_name=id_info.get("family_name") or "",
            avatar_url=id_info.get("picture"),
            google_id=google_id,
            role=UserRole.CLIENT,
            is_verified=bool(id_info.get("email_verified")),
        )
        db.add(user)
    else:
        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")
        if not user.google_id:
            user.google_id = google_id
        if not user.avatar_url and id_info.get("picture"):
            user.avatar_url = id_info.get("picture")
        if id_info.get("email_verified"):
            user.is_verified = True

    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)

    return issue_token(user)


# ===== Password reset and email verification =====

RESET_REQUESTED_MESSAGE = "If an account exists with this email, a password reset link has been sent"
VERIFICATION_SENT_MESSAGE = "If an unverified account exists with this email, a verification link has been sent"


@router.post("/forgot-password", response_model=ApiResponse[dict], dependencies=[Depends(rate_limit(RateLimitPresets.AUTH))])
def forgot_password(
    payload: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    # the response never reveals whether the address is registered
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if user and user.is_active:
        token, user.reset_token_hash = generate_one_time_token()
        user.reset_token_expires = datetime.utcnow() + timedelta(minutes=config.PASSWORD_RESET_EXPIRE_MINUTES)
        db.commit()
        NotificationService(db, background_tasks).email(
            "Password reset email",
            email_service.send_password_reset_email,
            user.email,
            f"{config.APP_URL}/reset-password?token={token}",
            user.first_name,
            config.PASSWORD_RESET_EXPIRE_MINUTES,
        )
        logger.info(f"Password reset requested for user {user.id}")
    return success_response(None, RESET_REQUESTED_MESSAGE)


@router.post("/reset-password", response_model=ApiResponse[dict], dependencies=[Depends(rate_limit(RateLimitPresets.AUTH))])
def reset_password(payload: ResetPasswordRequest, request: Request, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.reset_token_hash == hash_token(payload.token)).first()
    if not user or not user.reset_token_expires or user.reset_token_expires < datetime.utcnow():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    if not is_strong_password(payload.password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must contain at least one uppercase letter, one lowercase letter, and one number",
        )

    user.password_hash = get_password_hash(payload.password)
    user.reset_token_hash = None
    user.reset_token_expires = None
    record_activity(db, user.id, "PASSWORD_RESET", "Password reset via emailed link", request)
    db.commit()

    logger.info(f"Password reset completed for user {user.id}")
    return success_response({"email": user.email}, "Password has been reset successfully")


@router.post("/verify-email", response_model=ApiResponse[dict])
def verify_email(payload: VerifyEmailRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.verification_token_hash == hash_token(payload.token)).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired verification token")

    user.is_verified = True
    user.verification_token_hash = None
    db.commit()

    return success_response({"email": user.email}, "Email verified successfully")


@router.post("/resend-verification", response_model=ApiResponse[dict], dependencies=[Depends(rate_limit(RateLimitPresets.AUTH))])
def resend_verification(
    payload: ResendVerificationRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user or not user.is_active:
        return success_response(None, VERIFICATION_SENT_MESSAGE)
    if user.is_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is already verified")

    token, user.verification_token_hash = generate_one_time_token()
    db.commit()
    NotificationService(db, background_tasks).email(
        "Verification email",
        email_service.send_verification_email,
        user.email,
        f"{config.APP_URL}/verify-email?token={token}",
        user.first_name,
    )
    return success_response(None, VERIFICATION_SENT_MESSAGE)


@router.get("/me", response_model=ApiResponse[UserData])
def get_current_user_info(current_user: User = Depends(get_current_user)):
    return success_response({"user": current_user}, "User retrieved successfully")
