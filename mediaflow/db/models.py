"""
MediaFlow Storage Models — SQLAlchemy tables backing the reference stores.

Tables:
1. folders      — Folder hierarchy (parent_id NULL = root), stable key, protected flag
2. folder_meta  — Per-folder attributes; permission entries use meta_key "access:<role>"
3. items        — Media items and the folder that holds them (NULL = uncategorized)
4. options      — Named JSON settings (inbox map, approved-folder override)
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from mediaflow.db.base import Base, TimestampMixin


# ---------------------------------------------------------------------------
# 1. Folders
# ---------------------------------------------------------------------------

class FolderRow(Base, TimestampMixin):
    __tablename__ = "folders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    parent_id = Column(Integer, ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    key = Column(String(100), unique=True, nullable=True)
    is_protected = Column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<FolderRow(id={self.id}, name='{self.name}', key={self.key!r})>"


# ---------------------------------------------------------------------------
# 2. Folder attributes
# ---------------------------------------------------------------------------

class FolderMeta(Base):
    __tablename__ = "folder_meta"

    id = Column(Integer, primary_key=True, autoincrement=True)
    folder_id = Column(Integer, ForeignKey("folders.id", ondelete="CASCADE"), nullable=False)
    meta_key = Column(String(120), nullable=False)
    # JSON list of action values; [] is an explicit deny-all, never "absent"
    meta_value = Column(JSON, nullable=False)

    __table_args__ = (
        UniqueConstraint("folder_id", "meta_key", name="uq_folder_meta_key"),
        Index("ix_folder_meta_key", "meta_key"),
    )

    def __repr__(self) -> str:
        return f"<FolderMeta(folder_id={self.folder_id}, key='{self.meta_key}')>"


# ---------------------------------------------------------------------------
# 3. Items
# ---------------------------------------------------------------------------

class ItemRow(Base, TimestampMixin):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    author_id = Column(Integer, nullable=False, index=True)
    folder_id = Column(Integer, ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<ItemRow(id={self.id}, author={self.author_id}, folder={self.folder_id})>"


# ---------------------------------------------------------------------------
# 4. Options
# ---------------------------------------------------------------------------

class OptionRow(Base):
    __tablename__ = "options"

    name = Column(String(191), primary_key=True)
    value = Column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<OptionRow(name='{self.name}')>"
