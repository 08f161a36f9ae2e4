from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from guiche import config


def engine_options(url: str) -> dict:
    # checkout routes and webhook reconciliation open sessions from worker threads
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


DATABASE_URL = config.require("DATABASE_URL")
engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()
