from __future__ import annotations

from collections.abc import Callable
from datetime import date

from pydantic import BaseModel
from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from ..models import GeneratedPlan
from ..schemas.generation import NutritionPlanRequest, PlanKind, TrainingPlanRequest


class PlanRepository:
    @staticmethod
    def create(
        db: Session,
        *,
        owner_id: str,
        kind: PlanKind,
        plan_name: str,
        start_date: date,
        end_date: date,
        parameters: dict,
        plan_data: dict,
        provider_config_id: int | None,
    ) -> GeneratedPlan:
        plan = GeneratedPlan(
            owner_id=owner_id,
            kind=kind.value,
            plan_name=plan_name,
            start_date=start_date,
            end_date=end_date,
            parameters=parameters,
            plan_data=plan_data,
            provider_config_id=provider_config_id,
        )
        db.add(plan)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(plan)
        return plan

    @staticmethod
    def get(db: Session, plan_id: int, owner_id: str, kind: PlanKind) -> GeneratedPlan | None:
        query = select(GeneratedPlan).where(
            and_(
                GeneratedPlan.id == plan_id,
                GeneratedPlan.owner_id == owner_id,
                GeneratedPlan.kind == kind.value,
            )
        )
        return db.execute(query).scalars().first()

    @staticmethod
    def list_for_owner(
        db: Session,
        owner_id: str,
        kind: PlanKind,
        *,
        skip: int = 0,
        limit: int = 20,
    ) -> list[GeneratedPlan]:
        query = (
            select(GeneratedPlan)
            .where(and_(GeneratedPlan.owner_id == owner_id, GeneratedPlan.kind == kind.value))
            .order_by(GeneratedPlan.created_at.desc(), GeneratedPlan.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(db.execute(query).scalars().all())


class SqlPlanStore:
    """Saves validated plan documents, one session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def save(
        self,
        owner_id: str,
        kind: PlanKind,
        document: BaseModel,
        request: TrainingPlanRequest | NutritionPlanRequest,
        provider_config_id: int | None,
    ) -> str:
        start, end = request.planned_dates()
        with self._session_factory() as db:
            plan = PlanRepository.create(
                db,
                owner_id=owner_id,
                kind=kind,
                plan_name=request.plan_name,
                start_date=start,
                end_date=end,
                parameters=request.model_dump(mode="json"),
                plan_data=document.model_dump(mode="json"),
                provider_config_id=provider_config_id,
            )
            return str(plan.id)
