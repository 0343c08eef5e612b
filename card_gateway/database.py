"""Storage for orders, order notes and saved cards."""
import os
from pathlib import Path
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

Base = declarative_base()


def make_engine(url: str):
    # SQLite connections are shared with the request threads
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


def make_session_factory(bind):
    return sessionmaker(bind=bind, autocommit=False, autoflush=False)


def init_db(bind=None):
    """Create the gateway tables that don't exist yet."""
    Base.metadata.create_all(bind=bind or engine)


DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

engine = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)
