from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from decouple import config

DATABASE_URL = config("DATABASE_URL", default="sqlite:///./patrick_travel.db")

engine_kwargs = {"pool_pre_ping": True, "echo": False}
if DATABASE_URL.startswith("sqlite"):
    # SQLite connections are shared across the threadpool FastAPI runs sync handlers in
    engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    engine_kwargs["pool_recycle"] = 300  # Recycle connections every 5 minutes

engine = create_engine(DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
