from __future__ import annotations

from flask import Flask

from ..common.http import json_body, json_response
from ..container import Container
from ..core.exceptions import ValidationError


def register(app: Flask, container: Container) -> None:
    service = container.policy_service

    @app.route("/api/tenants/<tenant_id>/policy", methods=["GET"], endpoint="get_policy")
    def get_policy(tenant_id: str):
        return json_response(service.get_policy(tenant_id))

    @app.route("/api/tenants/<tenant_id>/policy", methods=["PATCH"], endpoint="update_policy")
    def update_policy(tenant_id: str):
        body = json_body()
        changes = body.get("changes")
        if not isinstance(changes, dict):
            raise ValidationError("changes must be an object")
        return json_response(service.update_policy(tenant_id, changes, body.get("performed_by")))
