from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import (
    create_engine, Column, Integer, String, Date,
    DateTime, Index, UniqueConstraint
)
from sqlalchemy.orm import sessionmaker, declarative_base, scoped_session
from werkzeug.security import generate_password_hash

logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ---------------------------
# Models
# ---------------------------

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(60), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)  # ADMIN / STAFF
    created_at = Column(DateTime, default=utcnow)

    # Flask-Login interface
    @property
    def is_authenticated(self): return True

    @property
    def is_active(self): return True

    @property
    def is_anonymous(self): return False

    def get_id(self): return str(self.id)


class CountEntry(Base):
    """One counted snapshot of one item on one calendar day."""

    __tablename__ = "inventory_counts"
    __table_args__ = (
        UniqueConstraint("item_name", "date", name="uq_inventory_counts_item_date"),
        Index("ix_inventory_counts_date", "date"),
    )

    id = Column(Integer, primary_key=True)
    item_name = Column(String(200), nullable=False)
    date = Column(Date, nullable=False)

    yesterday_count = Column(Integer, nullable=False, default=0)
    current_count = Column(Integer, nullable=False)
    restocks_received = Column(Integer, nullable=False, default=0)
    sold_calculated = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)


# ---------------------------
# Engine / session setup
# ---------------------------

def make_session_factory(database_url: str):
    engine = create_engine(database_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True))
    return engine, SessionLocal


def init_db_and_seed(engine, SessionLocal, admin_password: str, staff_password: str):
    Base.metadata.create_all(engine)
    s = SessionLocal()
    try:
        if s.query(User).count() == 0:
            s.add_all([
                User(username="admin", password_hash=generate_password_hash(admin_password), role="ADMIN"),
                User(username="staff", password_hash=generate_password_hash(staff_password), role="STAFF"),
            ])
            s.commit()
            logger.info("Seeded default admin and staff accounts")
        logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))
    finally:
        s.close()
