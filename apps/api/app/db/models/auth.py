"""Tenant and identity models."""

from __future__ import annotations

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class Org(Base):
    """Tenant root. Owns users and sites."""

    __tablename__ = "orgs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class User(Base):
    """
    Dashboard user.

    Managers implicitly see every site of their org; other roles see the
    sites listed in user_site_assignments.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    org_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("orgs.id"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)  # Role
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    site_assignments: Mapped[list["UserSiteAssignment"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class UserSiteAssignment(Base):
    """Explicit site scope for non-manager users."""

    __tablename__ = "user_site_assignments"

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    site_id: Mapped[str] = mapped_column(String(64), primary_key=True)
