from __future__ import annotations

import dataclasses
from typing import Any, Dict, Optional

from ..common.serialization import dumps, loads, to_jsonable
from ..core.enums import ResolutionStrategy
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import ReconciliationPolicy
from .repository import PolicyRepository
from .service import parse_break_rules

_ROW_FIELDS = {"tenant_id", "updated_by", "created_at", "updated_at"}


def _settings_of(policy: ReconciliationPolicy) -> Dict[str, Any]:
    return {
        f.name: to_jsonable(getattr(policy, f.name))
        for f in dataclasses.fields(ReconciliationPolicy)
        if f.name not in _ROW_FIELDS
    }


def _to_policy(r: Dict[str, Any]) -> ReconciliationPolicy:
    settings = loads(r.get("settings"), {})
    known = {f.name for f in dataclasses.fields(ReconciliationPolicy)} - _ROW_FIELDS
    values = {k: v for k, v in settings.items() if k in known}
    if "conflict_resolution" in values:
        values["conflict_resolution"] = ResolutionStrategy(values["conflict_resolution"])
    if "break_conversion_rules" in values:
        values["break_conversion_rules"] = parse_break_rules(values["break_conversion_rules"])
    return ReconciliationPolicy(
        tenant_id=str(r["tenant_id"]),
        updated_by=str(r["updated_by"]),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
        **values,
    )


class MySQLPolicyRepository(PolicyRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, tenant_id: str) -> Optional[ReconciliationPolicy]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT tenant_id, settings, updated_by, created_at, updated_at
                FROM reconciliation_policies
                WHERE tenant_id=%s
                """,
                (tenant_id,),
            )
            r = fetchone(cur)
            return _to_policy(r) if r else None

    def save(self, policy: ReconciliationPolicy) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO reconciliation_policies(tenant_id, settings, updated_by, created_at, updated_at)
                VALUES(%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    settings=VALUES(settings), updated_by=VALUES(updated_by), updated_at=VALUES(updated_at)
                """,
                (
                    policy.tenant_id,
                    dumps(_settings_of(policy)),
                    policy.updated_by,
                    policy.created_at,
                    policy.updated_at,
                ),
            )
