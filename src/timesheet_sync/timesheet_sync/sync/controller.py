from __future__ import annotations

from flask import Flask

from ..common.http import json_body, json_response, query_int
from ..container import Container
from ..core.constants import DEFAULT_HISTORY_LIMIT


def register(app: Flask, container: Container) -> None:
    service = container.sync_service

    @app.route("/api/tenants/<tenant_id>/sync", methods=["POST"], endpoint="run_sync")
    def run_sync(tenant_id: str):
        body = json_body()
        result = service.synchronize(
            tenant_id,
            body.get("direction", "bidirectional"),
            body.get("start"),
            body.get("end"),
            body.get("performed_by"),
            employee_ids=body.get("employee_ids"),
        )
        return json_response(result)

    @app.route("/api/tenants/<tenant_id>/sync/history", methods=["GET"], endpoint="sync_history")
    def sync_history(tenant_id: str):
        return json_response(service.get_sync_history(tenant_id, limit=query_int("limit", DEFAULT_HISTORY_LIMIT)))

    @app.route("/api/tenants/<tenant_id>/sync/statistics", methods=["GET"], endpoint="sync_statistics")
    def sync_statistics(tenant_id: str):
        return json_response(service.get_sync_statistics(tenant_id))

    @app.route("/api/tenants/<tenant_id>/sync/conflicts", methods=["GET"], endpoint="pending_conflicts")
    def pending_conflicts(tenant_id: str):
        return json_response(service.get_pending_conflicts(tenant_id))

    @app.route("/api/tenants/<tenant_id>/sync/conflicts/reconcile", methods=["POST"], endpoint="reconcile_conflicts")
    def reconcile_conflicts(tenant_id: str):
        body = json_body()
        outcome = service.reconcile_pending(
            tenant_id,
            body.get("performed_by"),
            conflict_ids=body.get("conflict_ids"),
            strategy=body.get("strategy"),
        )
        return json_response(outcome)
