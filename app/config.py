from decouple import config, Csv

# Auth
SECRET_KEY = config("SECRET_KEY", default="change-me-in-production")
ALGORITHM = config("ALGORITHM", default="HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = config("ACCESS_TOKEN_EXPIRE_MINUTES", default=60 * 24, cast=int)
GOOGLE_CLIENT_ID = config("GOOGLE_CLIENT_ID", default="")
PASSWORD_RESET_EXPIRE_MINUTES = config("PASSWORD_RESET_EXPIRE_MINUTES", default=60, cast=int)
ACCOUNT_DELETION_GRACE_DAYS = config("ACCOUNT_DELETION_GRACE_DAYS", default=30, cast=int)

# HTTP surface
APP_URL = config("APP_URL", default="http://localhost:3000")
MOBILE_APP_URLS = config("MOBILE_APP_URLS", default="", cast=Csv())
DEBUG = config("DEBUG", default=False, cast=bool)
RATE_LIMIT_ENABLED = config("RATE_LIMIT_ENABLED", default=True, cast=bool)

# Firebase Realtime Database
FIREBASE_CREDENTIALS_PATH = config("FIREBASE_CREDENTIALS_PATH", default="")
FIREBASE_DATABASE_URL = config("FIREBASE_DATABASE_URL", default="")

# Stripe
STRIPE_SECRET_KEY = config("STRIPE_SECRET_KEY", default="")
STRIPE_WEBHOOK_SECRET = config("STRIPE_WEBHOOK_SECRET", default="")

# UploadThing
UPLOADTHING_SECRET = config("UPLOADTHING_SECRET", default="")
UPLOADTHING_API_URL = config("UPLOADTHING_API_URL", default="https://api.uploadthing.com")

# SMTP
SMTP_HOST = config("SMTP_HOST", default="smtp.gmail.com")
SMTP_PORT = config("SMTP_PORT", default=587, cast=int)
SMTP_USER = config("SMTP_USER", default="")
SMTP_PASSWORD = config("SMTP_PASSWORD", default="")
SMTP_USE_TLS = config("SMTP_USE_TLS", default=True, cast=bool)
EMAIL_FROM = config("EMAIL_FROM", default="Patrick Travel Services <no-reply@patricktravel.com>")

# Seed
ADMIN_EMAIL = config("ADMIN_EMAIL", default="admin@patricktravel.com")
ADMIN_PASSWORD = config("ADMIN_PASSWORD", default="ChangeMe123!")
