# addresskit/dependencies/services.py
from typing import Optional
from fastapi import Depends, Header

from addresskit.configs import env, get_setting
from addresskit.models.unit import SchemaVersion
from addresskit.services.bridge import CrossVersionBridge
from addresskit.services.db import BeanieHistoryRepository, BeanieUnitRepository
from addresskit.services.fallback_store import DeleteLog, FallbackStore, FallbackStores
from addresskit.services.history_log import HistoryLog
from addresskit.services.lifecycle import UnitLifecycleManager
from addresskit.services.repository import HistoryRepository, UnitRepository
from addresskit.services.resolver import Resolver

unit_repository = BeanieUnitRepository()
history_repository = BeanieHistoryRepository()
fallback_stores = FallbackStores(
    FallbackStore(
        env.get("FALLBACK_V1_PATH") or get_setting("fallback", "v1_path"),
        SchemaVersion.V1,
    ),
    FallbackStore(
        env.get("FALLBACK_V2_PATH") or get_setting("fallback", "v2_path"),
        SchemaVersion.V2,
    ),
)
delete_log = DeleteLog(
    env.get("DELETE_LOG_PATH") or get_setting("fallback", "delete_log_path")
)


def get_unit_repository() -> UnitRepository:
    return unit_repository


def get_history_repository() -> HistoryRepository:
    return history_repository


def get_fallback_stores() -> FallbackStores:
    return fallback_stores


def get_delete_log() -> DeleteLog:
    return delete_log


def get_history_log(
    repository: HistoryRepository = Depends(get_history_repository),
) -> HistoryLog:
    return HistoryLog(
        repository, get_setting("history", "default_changed_by", "system")
    )


def get_resolver(
    repository: UnitRepository = Depends(get_unit_repository),
    fallback: FallbackStores = Depends(get_fallback_stores),
) -> Resolver:
    return Resolver(
        repository,
        fallback,
        search_limit=get_setting("search", "limit", 50),
        max_depth=get_setting("bridge", "max_depth", 5),
    )


def get_lifecycle_manager(
    repository: UnitRepository = Depends(get_unit_repository),
    history: HistoryLog = Depends(get_history_log),
    fallback: FallbackStores = Depends(get_fallback_stores),
    log: DeleteLog = Depends(get_delete_log),
) -> UnitLifecycleManager:
    return UnitLifecycleManager(repository, history, fallback, log)


def get_bridge(resolver: Resolver = Depends(get_resolver)) -> CrossVersionBridge:
    return CrossVersionBridge(resolver)


def get_changed_by(
    x_changed_by: Optional[str] = Header(default=None),
) -> Optional[str]:
    """Actor recorded in history entries, from the X-Changed-By header."""
    return x_changed_by.strip() if x_changed_by and x_changed_by.strip() else None
