from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from config import DATABASE_URL


def make_engine(url: str = DATABASE_URL, **kwargs):
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, echo=False, **kwargs)


engine = make_engine()
SessionLocal = sessionmaker(bind=engine)

Base = declarative_base()


def init_db(bind=engine):
    # models must be imported so their tables are registered on Base.metadata
    import models  # noqa: F401
    Base.metadata.create_all(bind=bind)
