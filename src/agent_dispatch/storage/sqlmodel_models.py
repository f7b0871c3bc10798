"""SQLModel ORM tables for dispatch storage."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, text
from sqlmodel import Field, SQLModel


class Agent(SQLModel, table=True):
    __tablename__ = "agents"  # type: ignore[bad-override]

    agent_id: str = Field(primary_key=True)
    name: str
    email: str = Field(unique=True, index=True)
    mobile: str = ""
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class SubAgent(SQLModel, table=True):
    __tablename__ = "sub_agents"  # type: ignore[bad-override]
    __table_args__ = (
        Index(
            "ix_sub_agents_owner_active_created",
            "owner_agent_id",
            "active",
            "created_at",
        ),
    )

    sub_agent_id: str = Field(primary_key=True)
    owner_agent_id: str = Field(index=True)
    name: str
    email: str = Field(index=True)
    mobile: str | None = None
    active: bool = Field(default=True, sa_column_kwargs={"server_default": text("1")})
    capacity: int | None = None
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class RotationCursorRow(SQLModel, table=True):
    __tablename__ = "rotation_cursors"  # type: ignore[bad-override]

    owner_scope: str = Field(primary_key=True)
    last_index: int = Field(default=0, sa_column_kwargs={"server_default": text("0")})
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class UploadBatchRow(SQLModel, table=True):
    __tablename__ = "uploads"  # type: ignore[bad-override]

    upload_id: str = Field(primary_key=True)
    filename: str
    original_name: str
    total_items: int = 0
    uploaded_by: str = Field(index=True)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class TaskRow(SQLModel, table=True):
    __tablename__ = "tasks"  # type: ignore[bad-override]
    __table_args__ = (
        Index("ix_tasks_owner_created", "owner_agent_id", "created_at"),
        Index("ix_tasks_assigned_created", "assigned_to", "created_at"),
    )

    task_id: str = Field(primary_key=True)
    upload_id: str = Field(
        sa_column=Column(
            String,
            ForeignKey("uploads.upload_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    title: str
    description: str | None = None
    status: str = Field(default="pending", index=True)
    priority: str = Field(default="medium", index=True)
    assigned_to: str | None = Field(default=None)
    owner_agent_id: str | None = Field(default=None)
    sub_assigned_to: str | None = Field(default=None, index=True)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
