from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from toggles.core.errors import ToggleError
from toggles.core.logger import get_logger
from toggles.core.store.last_reload import LastReload, ReloadStatus
from toggles.web.models import ReloadResponse, ToggleListResponse, ToggleResponse, UpdateRequest

STATUS_BY_CODE = {
    "validation_error": 400,
    "unknown_key": 404,
    "decode_error": 502,
    "backend_error": 503,
    "backend_timeout": 504,
}


def _staleness_warning(lr: LastReload) -> Optional[str]:
    if lr.status == ReloadStatus.FAILED:
        since = lr.reload_date.isoformat() if lr.reload_date else "startup"
        return f"Showing last known values (loaded {since}); the latest reload failed: {lr.error}"
    if lr.status == ReloadStatus.NEVER:
        return "Toggles have not been loaded from the backend yet; showing defaults."
    return None


def create_app(store, *, logger=None, sync=None) -> FastAPI:
    app = FastAPI(title="Toggles Admin", version="0.1.0")
    log = logger or get_logger("web")

    @app.exception_handler(ToggleError)
    async def toggle_error_handler(request: Request, exc: ToggleError):
        code = STATUS_BY_CODE.get(exc.code, 500)
        if code >= 500:
            log.warning(f"{request.method} {request.url.path} failed ({exc.code}): {exc.user_message}")
        content = {"detail": exc.user_message, "code": exc.code}
        if exc.code == "validation_error" and exc.context.get("constraint"):
            content["constraint"] = exc.context["constraint"]
        return JSONResponse(status_code=code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": "Invalid request.", "code": "validation_error"})

    @app.get("/health")
    async def health():
        lr = store.last_reload()
        return {
            "status": "degraded" if lr.status == ReloadStatus.FAILED else "ok",
            "last_reload": lr.to_dict(),
            "sync_running": bool(sync.is_running()) if sync is not None else None,
        }

    @app.get("/v1/toggles", response_model=ToggleListResponse)
    def list_toggles():
        lr = store.last_reload()
        return ToggleListResponse(
            toggles=[v.model_dump(mode="json", exclude={"history"}) for v in store.definitions()],
            last_reload=lr.to_dict(),
            stale=lr.is_stale,
            warning=_staleness_warning(lr),
            version=store.current_version(),
        )

    @app.get("/v1/toggles/{key}", response_model=ToggleResponse)
    def get_toggle(key: str):
        view = store.definition(key)
        lr = store.last_reload()
        return ToggleResponse(toggle=view.model_dump(mode="json"), stale=lr.is_stale, warning=_staleness_warning(lr))

    @app.post("/v1/toggles/{key}", response_model=ToggleResponse)
    def update_toggle(key: str, req: UpdateRequest):
        view = store.update_json(key, req.value, req.modified_by)
        lr = store.last_reload()
        return ToggleResponse(toggle=view.model_dump(mode="json"), stale=lr.is_stale, warning=_staleness_warning(lr))

    @app.post("/v1/reload", response_model=ReloadResponse)
    def reload():
        lr = store.reload()
        return ReloadResponse(last_reload=lr.to_dict(), version=store.current_version())

    return app
