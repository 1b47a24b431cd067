from __future__ import annotations

from flask import Flask, request

from ..common.http import json_body, json_response, query_int
from ..common.serialization import parse_datetime
from ..container import Container
from ..core.constants import DEFAULT_HISTORY_LIMIT


def register(app: Flask, container: Container) -> None:
    service = container.import_service

    @app.route("/api/tenants/<tenant_id>/import-jobs", methods=["POST"], endpoint="start_import_job")
    def start_import_job(tenant_id: str):
        body = json_body()
        job = service.start_import_job(
            tenant_id,
            body.get("trigger", "manual"),
            body.get("import_kind", "presence_to_timesheet"),
            body.get("start"),
            body.get("end"),
            body.get("performed_by"),
            employee_ids=body.get("employee_ids"),
        )
        return json_response(job, 202)

    @app.route("/api/tenants/<tenant_id>/import-jobs", methods=["GET"], endpoint="import_history")
    def import_history(tenant_id: str):
        return json_response(service.get_import_history(tenant_id, limit=query_int("limit", DEFAULT_HISTORY_LIMIT)))

    @app.route("/api/tenants/<tenant_id>/import-jobs/active", methods=["GET"], endpoint="active_import_jobs")
    def active_import_jobs(tenant_id: str):
        return json_response(service.get_active_import_jobs(tenant_id))

    @app.route("/api/tenants/<tenant_id>/import-jobs/statistics", methods=["GET"], endpoint="import_statistics")
    def import_statistics(tenant_id: str):
        stats = service.get_import_statistics(
            tenant_id,
            since=parse_datetime(request.args.get("since")),
            until=parse_datetime(request.args.get("until")),
        )
        return json_response(stats)

    @app.route("/api/tenants/<tenant_id>/import-jobs/<job_id>", methods=["GET"], endpoint="get_import_job")
    def get_import_job(tenant_id: str, job_id: str):
        return json_response(service.get_import_job(tenant_id, job_id))

    @app.route("/api/tenants/<tenant_id>/import-jobs/<job_id>/cancel", methods=["POST"], endpoint="cancel_import_job")
    def cancel_import_job(tenant_id: str, job_id: str):
        body = json_body()
        cancelled = service.cancel_import_job(tenant_id, job_id, body.get("performed_by"))
        return json_response({"job_id": job_id, "cancelled": cancelled})
