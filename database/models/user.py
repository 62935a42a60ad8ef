import uuid

from sqlalchemy import Column, Text, Boolean, TIMESTAMP, func, Index
from sqlalchemy.sql import text as sql_text
from sqlalchemy.dialects.postgresql import UUID

from .base import Base


class User(Base):
    """
    Authoritative user record. Providers are users that publish offers.

    Only display_name and avatar_url are read by the search engine; the
    credential columns are owned by the authentication layer.
    """
    __tablename__ = 'users'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    display_name = Column(Text, nullable=False)
    avatar_url = Column(Text)
    person_type = Column(Text, nullable=False, default='PF')  # PF|PJ

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"), onupdate=func.now())
    deleted_at = Column(TIMESTAMP(timezone=True))

    __table_args__ = (
        Index('idx_users_email', 'email'),
        Index('idx_users_deleted_at', 'deleted_at', postgresql_where=deleted_at.is_(None)),
    )
