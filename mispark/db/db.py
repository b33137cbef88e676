from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from mispark.config import DATABASE_URL


def make_engine(url: str = DATABASE_URL):
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(url, pool_pre_ping=True)


engine = make_engine()


def create_db_and_tables(bind=None):
    SQLModel.metadata.create_all(bind or engine)
