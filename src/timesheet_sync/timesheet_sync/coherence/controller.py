from __future__ import annotations

from flask import Flask, request

from ..common.http import json_body, json_response, query_int
from ..common.validators import require_enum
from ..container import Container
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_ISSUE_LIMIT
from ..core.enums import IssueSeverity, IssueStatus, IssueType
from ..core.exceptions import NotFoundError
from ..resolution.model import IssueResolution
from .model import IssueFilter


def _issue_filter() -> IssueFilter:
    args = request.args

    def optional_enum(enum_cls, name):
        value = args.get(name)
        return require_enum(enum_cls, value, name) if value else None

    return IssueFilter(
        check_id=args.get("check_id") or None,
        issue_type=optional_enum(IssueType, "type"),
        severity=optional_enum(IssueSeverity, "severity"),
        status=optional_enum(IssueStatus, "status"),
        employee_id=args.get("employee_id") or None,
        start=args.get("start") or None,
        end=args.get("end") or None,
        limit=query_int("limit", DEFAULT_ISSUE_LIMIT),
    )


def register(app: Flask, container: Container) -> None:
    coherence = container.coherence_service
    resolution = container.resolution_service

    @app.route("/api/tenants/<tenant_id>/coherence/checks", methods=["POST"], endpoint="start_coherence_check")
    def start_coherence_check(tenant_id: str):
        body = json_body()
        check = coherence.perform_coherence_check(
            tenant_id,
            body.get("check_kind", "on_demand"),
            body.get("start"),
            body.get("end"),
            body.get("performed_by"),
            employee_ids=body.get("employee_ids"),
            auto_fix=bool(body.get("auto_fix", False)),
        )
        return json_response(check, 202)

    @app.route("/api/tenants/<tenant_id>/coherence/checks", methods=["GET"], endpoint="list_coherence_checks")
    def list_coherence_checks(tenant_id: str):
        checks = coherence.get_coherence_checks(
            tenant_id,
            status=request.args.get("status") or None,
            check_kind=request.args.get("check_kind") or None,
            limit=query_int("limit", DEFAULT_HISTORY_LIMIT),
        )
        return json_response(checks)

    @app.route("/api/tenants/<tenant_id>/coherence/checks/<check_id>", methods=["GET"], endpoint="get_coherence_check")
    def get_coherence_check(tenant_id: str, check_id: str):
        return json_response(coherence.get_coherence_check(tenant_id, check_id))

    @app.route("/api/tenants/<tenant_id>/coherence/issues", methods=["GET"], endpoint="list_coherence_issues")
    def list_coherence_issues(tenant_id: str):
        return json_response(coherence.get_coherence_issues(tenant_id, _issue_filter()))

    @app.route("/api/tenants/<tenant_id>/coherence/issues/<issue_id>/resolve", methods=["POST"], endpoint="resolve_issue")
    def resolve_issue(tenant_id: str, issue_id: str):
        body = json_body()
        resolution_input = IssueResolution(
            status=require_enum(IssueStatus, body.get("status"), "status"),
            reviewed_by=body.get("performed_by"),
            notes=body.get("notes"),
        )
        return json_response(resolution.resolve_issue(tenant_id, issue_id, resolution_input))

    @app.route("/api/tenants/<tenant_id>/coherence/issues/<issue_id>/auto-fix", methods=["POST"], endpoint="auto_fix_issue")
    def auto_fix_issue(tenant_id: str, issue_id: str):
        body = json_body()
        issue = container.issues_repo.get(tenant_id=tenant_id, issue_id=issue_id)
        if not issue:
            raise NotFoundError(f"Issue {issue_id} not found")
        fixed = resolution.auto_fix(tenant_id, issue, body.get("performed_by"))
        return json_response({"issue_id": issue_id, "fixed": fixed})

    @app.route("/api/tenants/<tenant_id>/coherence/issues/auto-fix", methods=["POST"], endpoint="auto_fix_open_issues")
    def auto_fix_open_issues(tenant_id: str):
        body = json_body()
        outcome = resolution.resolve_open_issues(tenant_id, body.get("performed_by"), check_id=body.get("check_id"))
        return json_response(outcome)

    @app.route("/api/tenants/<tenant_id>/coherence/statistics", methods=["GET"], endpoint="coherence_statistics")
    def coherence_statistics(tenant_id: str):
        return json_response(coherence.get_coherence_statistics(tenant_id))

    @app.route("/api/tenants/<tenant_id>/coherence/cross-validation", methods=["GET"], endpoint="cross_validation")
    def cross_validation(tenant_id: str):
        employees = request.args.getlist("employee_id") or None
        report = coherence.cross_validate(tenant_id, request.args.get("start"), request.args.get("end"), employees)
        return json_response(report)
