from __future__ import annotations

from typing import Any

from sqlalchemy import and_, select, update
from sqlalchemy.orm import Session

from ..models import AIProviderConfig


class ProviderConfigRepository:
    """Persistence for per-user AI provider configurations.

    At most one active configuration per owner is marked default; every method
    that changes the default does so in a single transaction.
    """

    @staticmethod
    def list_for_owner(db: Session, owner_id: str) -> list[AIProviderConfig]:
        query = (
            select(AIProviderConfig)
            .where(AIProviderConfig.owner_id == owner_id)
            .order_by(AIProviderConfig.is_default.desc(), AIProviderConfig.created_at.desc(), AIProviderConfig.id.desc())
        )
        return list(db.execute(query).scalars().all())

    @staticmethod
    def get(db: Session, config_id: int, owner_id: str) -> AIProviderConfig | None:
        query = select(AIProviderConfig).where(
            and_(AIProviderConfig.id == config_id, AIProviderConfig.owner_id == owner_id)
        )
        return db.execute(query).scalars().first()

    @staticmethod
    def get_default(db: Session, owner_id: str) -> AIProviderConfig | None:
        query = select(AIProviderConfig).where(
            and_(
                AIProviderConfig.owner_id == owner_id,
                AIProviderConfig.is_default.is_(True),
                AIProviderConfig.is_active.is_(True),
            )
        )
        return db.execute(query).scalars().first()

    @staticmethod
    def _clear_default(db: Session, owner_id: str) -> None:
        db.execute(
            update(AIProviderConfig)
            .where(and_(AIProviderConfig.owner_id == owner_id, AIProviderConfig.is_default.is_(True)))
            .values(is_default=False)
        )

    @staticmethod
    def _has_default(db: Session, owner_id: str) -> bool:
        return ProviderConfigRepository.get_default(db, owner_id) is not None

    @staticmethod
    def create(db: Session, owner_id: str, data: dict[str, Any], make_default: bool) -> AIProviderConfig:
        try:
            # the first active config becomes the default automatically
            if make_default or not ProviderConfigRepository._has_default(db, owner_id):
                ProviderConfigRepository._clear_default(db, owner_id)
                make_default = True
            config = AIProviderConfig(owner_id=owner_id, is_default=make_default, **data)
            db.add(config)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(config)
        return config

    @staticmethod
    def update(db: Session, config: AIProviderConfig, changes: dict[str, Any]) -> AIProviderConfig:
        make_default = changes.pop("is_default", None)
        was_default = config.is_default
        try:
            for key, value in changes.items():
                setattr(config, key, value)
            if make_default and config.is_active:
                ProviderConfigRepository._clear_default(db, config.owner_id)
                config.is_default = True
            elif make_default is False or not config.is_active:
                config.is_default = False
                if was_default:
                    replacement = ProviderConfigRepository._promote_replacement(db, config.owner_id, config.id)
                    if replacement is None and config.is_active:
                        # the only active config stays default
                        config.is_default = True
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(config)
        return config

    @staticmethod
    def set_default(db: Session, config: AIProviderConfig) -> AIProviderConfig:
        try:
            ProviderConfigRepository._clear_default(db, config.owner_id)
            config.is_default = True
            config.is_active = True
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(config)
        return config

    @staticmethod
    def _promote_replacement(db: Session, owner_id: str, exclude_id: int | None = None) -> AIProviderConfig | None:
        """Mark the newest remaining active config as default; caller commits."""
        conditions = [AIProviderConfig.owner_id == owner_id, AIProviderConfig.is_active.is_(True)]
        if exclude_id is not None:
            conditions.append(AIProviderConfig.id != exclude_id)
        replacement = db.execute(
            select(AIProviderConfig)
            .where(and_(*conditions))
            .order_by(AIProviderConfig.created_at.desc(), AIProviderConfig.id.desc())
        ).scalars().first()
        if replacement is not None:
            replacement.is_default = True
        return replacement

    @staticmethod
    def delete(db: Session, config: AIProviderConfig) -> None:
        owner_id = config.owner_id
        was_default = config.is_default
        try:
            db.delete(config)
            db.flush()
            if was_default:
                ProviderConfigRepository._promote_replacement(db, owner_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
