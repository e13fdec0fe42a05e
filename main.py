from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import logging

from app import config
from app.database import engine, Base
from app.core.errors import register_exception_handlers
from app.auth.routes import router as auth_router
from app.users.routes import router as users_router
from app.cases.routes import router as cases_router
from app.documents.routes import router as documents_router
from app.messaging.routes import router as messaging_router, emails_router
from app.notifications.routes import router as notifications_router
from app.templates_catalog.routes import router as templates_router
from app.legal.routes import router as legal_router
from app.admin.routes import router as admin_router
from app.payments.routes import router as payments_router
from app.faq.routes import router as faq_router
from app.dashboard.routes import router as dashboard_router
from app.appointments.routes import router as appointments_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Patrick Travel Services API",
    description="Immigration case management for clients, agents and administrators",
    version="1.0.0"
)

# localhost and private LAN addresses, for device testing against a dev server
DEV_ORIGIN_REGEX = (
    r"https?://(localhost|127\.0\.0\.1|10\.\d+\.\d+\.\d+|192\.168\.\d+\.\d+"
    r"|172\.(1[6-9]|2\d|3[01])\.\d+\.\d+)(:\d+)?"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.APP_URL, *config.MOBILE_APP_URLS],
    allow_origin_regex=DEV_ORIGIN_REGEX if config.DEBUG else None,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

app.add_middleware(SecurityHeadersMiddleware)

register_exception_handlers(app)

# Include routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(cases_router)
app.include_router(documents_router)
app.include_router(messaging_router)
app.include_router(emails_router)
app.include_router(notifications_router)
app.include_router(templates_router)
app.include_router(legal_router)
app.include_router(admin_router)
app.include_router(payments_router)
app.include_router(faq_router)
app.include_router(dashboard_router)
app.include_router(appointments_router)

@app.get("/")
def root():
    return {
        "message": "Patrick Travel Services API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/health")
def health_check():
    return {"status": "healthy"}
