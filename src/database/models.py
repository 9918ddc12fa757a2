"""
SQLAlchemy models for the orchestration audit trail.
Both tables are append-only: one row per successful orchestration step.
"""
from __future__ import annotations
from datetime import datetime
from uuid import uuid4
from sqlalchemy import DateTime, Float, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class InsuranceCalculation(Base):
    __tablename__ = "insurance_calculations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    request_data: Mapped[str] = mapped_column(Text, nullable=False)
    response_data: Mapped[str] = mapped_column(Text, nullable=False)


class InsurancePayment(Base):
    __tablename__ = "insurance_payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    policy_number: Mapped[str] = mapped_column("policyNumber", String(64), nullable=False, index=True)
    premium: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    payment_link: Mapped[str] = mapped_column("paymentLink", Text, nullable=False, default="")
    ext_id: Mapped[str] = mapped_column("extId", String(128), nullable=False, default="")
    request_data: Mapped[str] = mapped_column(Text, nullable=False)
