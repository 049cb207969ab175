"""SQLAlchemy ORM tables."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from caseflow.core.database import Base, DATABASE_SCHEMA

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _fk(table_column: str) -> str:
    return f"{DATABASE_SCHEMA}.{table_column}" if DATABASE_SCHEMA else table_column


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=False, unique=True)
    settings = Column(JSONType, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), ForeignKey(_fk("tenants.id")), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class WorkflowConfigRecord(Base):
    __tablename__ = "workflow_configs"
    __table_args__ = (UniqueConstraint("tenant_id", "workflow_id", name="uq_workflow_configs_tenant_workflow"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    workflow_id = Column(String(100), nullable=False)
    tenant_id = Column(String(36), ForeignKey(_fk("tenants.id")), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    config = Column(JSONType, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class Case(Base):
    __tablename__ = "cases"
    __table_args__ = (
        Index("ix_cases_tenant_status", "tenant_id", "status"),
        Index("ix_cases_tenant_workflow", "tenant_id", "workflow_id"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), ForeignKey(_fk("tenants.id")), nullable=False)
    workflow_id = Column(String(100), nullable=False)
    current_stage = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="draft")
    priority = Column(String(20), nullable=False, default="medium")
    assigned_to = Column(String(36), nullable=True, index=True)
    created_by = Column(String(36), nullable=False)
    data = Column(JSONType, nullable=False, default=dict)
    # "metadata" is reserved on declarative classes
    case_metadata = Column("metadata", JSONType, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class LoanCase(Base):
    __tablename__ = "loan_cases"

    loan_id = Column(String(36), primary_key=True, default=_uuid)
    case_id = Column(String(36), ForeignKey(_fk("cases.id")), nullable=False, unique=True)
    tenant_id = Column(String(36), ForeignKey(_fk("tenants.id")), nullable=False, index=True)
    borrower_id = Column(String(36), nullable=False)
    product_id = Column(String(100), nullable=False)
    requested_amount = Column(Numeric(15, 2), nullable=False)
    approved_amount = Column(Numeric(15, 2), nullable=True)
    tenor = Column(Integer, nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=True)
    decision = Column(String(50), nullable=True)
    pd_score = Column(Numeric(5, 4), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class CaseHistory(Base):
    """Append-only: rows are never updated or deleted."""
    __tablename__ = "case_history"
    __table_args__ = (UniqueConstraint("case_id", "sequence", name="uq_case_history_case_sequence"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    case_id = Column(String(36), ForeignKey(_fk("cases.id")), nullable=False, index=True)
    tenant_id = Column(String(36), nullable=False)
    action = Column(String(100), nullable=False)
    from_stage = Column(String(100), nullable=True)
    to_stage = Column(String(100), nullable=True)
    performed_by = Column(String(36), nullable=False)
    comment = Column(Text, nullable=True)
    data = Column(JSONType, nullable=False, default=dict)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    sequence = Column(Integer, nullable=False, default=0)


class Document(Base):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), ForeignKey(_fk("tenants.id")), nullable=False, index=True)
    case_id = Column(String(36), ForeignKey(_fk("cases.id")), nullable=True, index=True)
    borrower_id = Column(String(36), nullable=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)
    file_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)
    document_type = Column(String(100), nullable=True)
    uploaded_by = Column(String(36), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class DocumentExtraction(Base):
    __tablename__ = "document_extractions"

    id = Column(String(36), primary_key=True, default=_uuid)
    document_id = Column(String(36), ForeignKey(_fk("documents.id")), nullable=False, index=True)
    extracted_data = Column(JSONType, nullable=False, default=dict)
    confidence_score = Column(Float, nullable=True)
    model_used = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ModelRun(Base):
    __tablename__ = "model_runs"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), ForeignKey(_fk("tenants.id")), nullable=False, index=True)
    model_name = Column(String(100), nullable=False)
    model_version = Column(String(50), nullable=False)
    input = Column(JSONType, nullable=False, default=dict)
    output = Column(JSONType, nullable=False, default=dict)
    confidence = Column(Float, nullable=True)
    explainability = Column(JSONType, nullable=True)
    case_id = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class EventOutbox(Base):
    __tablename__ = "event_outbox"
    __table_args__ = (Index("ix_event_outbox_status_created", "status", "created_at"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    event_type = Column(String(100), nullable=False)
    aggregate_type = Column(String(50), nullable=False)
    aggregate_id = Column(String(36), nullable=False)
    payload = Column(JSONType, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default="PENDING")
    tenant_id = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    published_at = Column(DateTime(timezone=True), nullable=True)
