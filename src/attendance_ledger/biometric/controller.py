from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import arg_bool, arg_int, body_int, current_actor, json_body
from ..common.presenters import mapping_json
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/biometric-mapping", methods=["GET"], endpoint="mapping_list")
    def mapping_list():
        items = container.mapping_service.list_mappings()
        return jsonify([mapping_json(i["mapping"], i["employee"]) for i in items])

    @app.route("/api/biometric-mapping/unmapped-employees", methods=["GET"], endpoint="mapping_unmapped")
    def mapping_unmapped():
        employees = container.mapping_service.search_unmapped(
            request.args.get("q"),
            limit=arg_int("limit", default=20),
        )
        return jsonify([e.summary() for e in employees])

    @app.route("/api/biometric-mapping", methods=["POST"], endpoint="mapping_create")
    def mapping_create():
        actor = current_actor()
        data = json_body()
        mapping = container.mapping_service.create(
            actor=actor,
            biometric_id=str(data.get("biometricId") or ""),
            employee_id=body_int(data, "employeeId"),
            notes=data.get("notes"),
        )
        return jsonify(mapping_json(mapping)), 201

    @app.route("/api/biometric-mapping/<int:mapping_id>", methods=["PUT", "PATCH"], endpoint="mapping_update")
    def mapping_update(mapping_id: int):
        actor = current_actor()
        data = json_body()
        mapping = container.mapping_service.update(
            actor=actor,
            mapping_id=mapping_id,
            is_active=arg_bool(data["isActive"]) if "isActive" in data else None,
            notes=data.get("notes"),
        )
        return jsonify(mapping_json(mapping))

    @app.route("/api/biometric-mapping/<int:mapping_id>", methods=["DELETE"], endpoint="mapping_delete")
    def mapping_delete(mapping_id: int):
        container.mapping_service.delete(actor=current_actor(), mapping_id=mapping_id)
        return jsonify({"success": True, "message": "Mapping deleted"})
