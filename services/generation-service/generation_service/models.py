from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class AIProviderConfig(Base):
    __tablename__ = "ai_provider_configs"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(255), nullable=False)
    provider = Column(String(32), nullable=False)
    name = Column(String(100), nullable=False)
    endpoint = Column(String(500), nullable=True)
    encrypted_secret = Column(Text, nullable=False)
    model = Column(String(100), nullable=True)
    max_tokens = Column(Integer, nullable=True)
    temperature = Column(Float, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_ai_provider_configs_owner_id", "owner_id"),)


class GeneratedPlan(Base):
    __tablename__ = "generated_plans"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(255), nullable=False)
    kind = Column(String(16), nullable=False)
    plan_name = Column(String(200), nullable=False)
    provider_config_id = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    parameters = Column(JSON)
    plan_data = Column(JSON, nullable=False)  # validated plan document
    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_generated_plans_owner_kind", "owner_id", "kind"),)
