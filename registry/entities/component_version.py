"""ComponentVersion model: one versioned snapshot of a component."""

from datetime import datetime

from sqlalchemy import JSON, String, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from registry.database import Base


class ComponentVersionRecord(Base):
    __tablename__ = "component_versions"
    __table_args__ = (
        Index("ix_component_versions_project_key", "project_id", "component_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), nullable=False)
    component_key: Mapped[str] = mapped_column(String(200), nullable=False)
    component_name: Mapped[str] = mapped_column(String(300), nullable=False)
    version: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    snapshot: Mapped[dict] = mapped_column(JSON, nullable=True)
    diff: Mapped[dict] = mapped_column(JSON, nullable=True)
    bump_type: Mapped[str] = mapped_column(String(10), nullable=True)
    created_by: Mapped[str] = mapped_column(String(200), nullable=False)
    reviewed_by: Mapped[str] = mapped_column(String(200), nullable=True)
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    thumbnail_url: Mapped[str] = mapped_column(Text, nullable=True)
    changelog_message: Mapped[str] = mapped_column(Text, nullable=True)
    superseded_by: Mapped[str] = mapped_column(String(36), nullable=True)

    audit_entries = relationship("AuditLog", back_populates="component_version", order_by="AuditLog.id")
