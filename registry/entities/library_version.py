"""LibraryVersion models: library releases and their component membership."""

from datetime import datetime

from sqlalchemy import String, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from registry.database import Base


class LibraryVersion(Base):
    __tablename__ = "library_versions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    version: Mapped[str] = mapped_column(String(30), nullable=False)
    bump_type: Mapped[str] = mapped_column(String(10), nullable=False)
    changelog_message: Mapped[str] = mapped_column(Text, nullable=True)
    published_by: Mapped[str] = mapped_column(String(200), nullable=False)
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class LibraryVersionComponent(Base):
    __tablename__ = "library_version_components"

    library_version_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("library_versions.id"), primary_key=True
    )
    component_version_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("component_versions.id"), primary_key=True
    )
    component_key: Mapped[str] = mapped_column(String(200), nullable=False)
    component_name: Mapped[str] = mapped_column(String(300), nullable=False)
