"""Routing REST API: staff lookup for external intake systems."""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, Query
from fastapi.responses import JSONResponse

from intake_funnel.routing.directory import StaffDirectory


def build_router(directory: StaffDirectory, prefix: str = "") -> APIRouter:
    router = APIRouter(prefix=prefix, tags=["routing"])

    @router.get("/executives")
    async def list_executives(include_admins: bool = Query(True, alias="includeAdmins")):
        """List active staff, optionally without admins."""
        staff = directory.list_staff(include_admins=include_admins)
        return {"success": True, "executives": [m.sanitized() for m in staff]}

    @router.get("/executives/by-specialization")
    async def executive_by_specialization(specialization: str | None = None):
        """Best staff member for a specialization."""
        if specialization is None or not specialization.strip():
            return JSONResponse(
                {"success": False, "message": "specialization query parameter is required"},
                status_code=400,
            )
        result = directory.resolve(specialization)
        return {"success": True, **result.as_dict()}

    @router.get("/executives/default")
    async def default_executive():
        """Fallback staff member when no specialization is known."""
        result = directory.resolve_default()
        return {"success": True, **result.as_dict()}

    @router.get("/executives/{staff_id}/validate")
    async def validate_executive(staff_id: str):
        """Check a previously routed staff id is still usable."""
        if not directory.validate(staff_id):
            return {"success": True, "valid": False}
        member = directory.require(staff_id)
        return {"success": True, "valid": True, "executive": member.sanitized()}

    return router


def create_app(directory: StaffDirectory, prefix: str = "") -> FastAPI:
    app = FastAPI(title="Intake Funnel Routing", version="0.1.0")
    app.include_router(build_router(directory, prefix=prefix.rstrip("/")))
    app.state.directory = directory
    return app
