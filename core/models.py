"""
Database Models Module

Defines SQLAlchemy ORM models for the application.
All models inherit from Base defined in database.py.

Embedded documents (field definitions, form settings, answer entries)
are stored in JSON columns so each row keeps its document shape.

Models:
    - User: Form owner and response submitter
    - Form: User-authored form with ordered field definitions
    - Response: One submitter's answers to a form
"""

from typing import Any, Dict, Optional

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text

from .database import Base, utcnow


class User(Base):
    """
    User model representing an account.

    Attributes:
        id: Primary key
        name: Display name
        email: Unique email address (used for login, case-sensitive)
        password_hash: Bcrypt hashed password
        avatar: Optional avatar URL
        is_active: Deactivated accounts cannot log in
        created_at: Account creation timestamp
        last_login: Last successful login (nullable)
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Authentication
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    # Profile
    name = Column(String(100), nullable=False)
    avatar = Column(String(2048), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_login = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"


class Form(Base):
    """
    Form model.

    ``is_active`` is the soft-delete flag: inactive forms are hidden from
    listings and public fetches, but their responses are kept.

    Indexes:
        - (owner_id, is_active): owner listings
        - category: filtering by category
    """

    __tablename__ = "forms"
    __table_args__ = (
        Index("ix_forms_owner_active", "owner_id", "is_active"),
    )

    id = Column(Integer, primary_key=True, index=True)

    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Ordered list of field definition documents
    fields = Column(JSON, nullable=False, default=list)

    theme = Column(String(20), nullable=False, default="default")
    deadline = Column(DateTime, nullable=True)
    category = Column(String(100), nullable=False, default="", index=True)
    settings = Column(JSON, nullable=False, default=dict)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Form(id={self.id}, title='{self.title}', active={self.is_active})>"

    @property
    def field_count(self) -> int:
        return len(self.fields or [])

    def find_field(self, field_id: str) -> Optional[Dict[str, Any]]:
        """First field definition with the given id, if any."""
        return next((f for f in self.fields or [] if f.get("id") == field_id), None)


class Response(Base):
    """
    Response model. Immutable once stored.

    ``answers`` holds the ordered answer entries
    (field_id, field_type, label, value, required); the column keeps the
    ``responses`` name of the document shape.

    Indexes:
        - (form_id, submitted_at): per-form listings and trends
        - submitted_at: recency queries across forms
    """

    __tablename__ = "responses"
    __table_args__ = (
        Index("ix_responses_form_submitted", "form_id", "submitted_at"),
    )

    id = Column(Integer, primary_key=True, index=True)

    form_id = Column(Integer, ForeignKey("forms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    answers = Column("responses", JSON, nullable=False, default=list)

    submitted_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    # Request metadata
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    time_spent = Column(Float, nullable=True)

    # Derived from the user agent
    device_type = Column(String(16), nullable=False, default="desktop")
    browser = Column(String(50), nullable=True)
    os = Column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Response(id={self.id}, form_id={self.form_id}, user_id={self.user_id})>"
