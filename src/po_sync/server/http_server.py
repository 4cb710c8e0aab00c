"""
http_server.py - HTTP surface for the submission pipeline.

FastAPI app exposing form submission, tracking queries and the admin
actions (manual push, resend, delete, endpoint config, PIN, retry
queue). Admin routes require the X-Admin-Pin header.

Run with:
    uvicorn po_sync.server.http_server:app
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from po_sync.context import AppContext
from po_sync.errors import NotFoundError, POSyncError, StorageError, ValidationError
from po_sync.models import ScheduleLine
from po_sync.schedule import apply_line, format_currency, recalc_totals

logger = logging.getLogger("po_sync.server")


class ConfigUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    endpoint: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")


class PinUpdate(BaseModel):
    new_pin: str = Field(alias="newPin")

    model_config = ConfigDict(populate_by_name=True)


class IdsRequest(BaseModel):
    ids: List[int]


class ScheduleRequest(BaseModel):
    schedule: List[Dict[str, Any]] = []


def create_app(context: AppContext | None = None) -> FastAPI:
    """
    Build the app around a context.

    The context is initialized on startup (if it is not already) and
    shut down when the app stops.
    """
    ctx = context or AppContext()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = not ctx.is_initialized
        if owned:
            await ctx.init()
        logger.info(f"Starting PO sync server with DB: {ctx.db_path}")
        yield
        if owned:
            await ctx.shutdown()

    app = FastAPI(title="PO Sync Server", lifespan=lifespan)
    app.state.context = ctx

    def get_context(request: Request) -> AppContext:
        return request.app.state.context

    async def require_admin(
        request: Request,
        x_admin_pin: Optional[str] = Header(default=None, alias="X-Admin-Pin"),
    ) -> None:
        if not get_context(request).settings.verify_admin_pin(x_admin_pin):
            logger.warning("Rejected admin request with invalid PIN")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect PIN",
            )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"success": False, "error": exc.message})

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": exc.message, "errors": exc.errors},
        )

    @app.exception_handler(StorageError)
    async def storage_handler(request: Request, exc: StorageError):
        logger.error(f"Storage failure: {exc}")
        return JSONResponse(status_code=500, content={"success": False, "error": exc.message})

    @app.exception_handler(POSyncError)
    async def general_handler(request: Request, exc: POSyncError):
        logger.error(f"Request failed: {exc}")
        return JSONResponse(status_code=500, content={"success": False, "error": exc.message})

    # ------------------------------------------------------------------
    # Public routes
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health_check(ctx: AppContext = Depends(get_context)):
        return {
            "status": "ok",
            "service": "po-sync",
            "online": ctx.network.is_online(),
            "database": "ok" if ctx.store.check_integrity() else "unavailable",
            "pending": ctx.store.count(sent=False),
            "sent": ctx.store.count(sent=True),
        }

    @app.post("/submissions", status_code=status.HTTP_201_CREATED)
    async def submit(payload: Dict[str, Any], ctx: AppContext = Depends(get_context)):
        result = await ctx.engine.submit(payload)
        if not result.success:
            return JSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content={"success": False, "errors": result.errors},
            )
        return {"success": True, "id": result.submission_id, "synced": result.synced}

    @app.get("/submissions")
    async def list_submissions(
        query: str = "",
        status_filter: Optional[str] = Query(default=None, alias="status"),
        contractor: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        ctx: AppContext = Depends(get_context),
    ):
        filters = {
            "query": query,
            "status": status_filter,
            "contractor": contractor,
            "page": page,
            "limit": limit,
        }
        return await ctx.service.get_pos(filters)

    @app.get("/submissions/{submission_id}")
    async def get_submission(submission_id: int, ctx: AppContext = Depends(get_context)):
        result = await ctx.service.get_po_by_id(submission_id)
        if not result["success"]:
            return JSONResponse(status_code=404, content=result)
        return result

    @app.put("/submissions/{submission_id}")
    async def revise_submission(
        submission_id: int,
        changes: Dict[str, Any],
        ctx: AppContext = Depends(get_context),
    ):
        result = await ctx.service.update_po(submission_id, changes)
        if not result["success"]:
            code = 404 if result.get("error") == "Purchase Order not found" else 422
            return JSONResponse(status_code=code, content=result)
        return result

    @app.get("/draft")
    async def load_draft(ctx: AppContext = Depends(get_context)):
        return {"draft": ctx.settings.load_draft()}

    @app.put("/draft")
    async def save_draft(draft: Dict[str, Any], ctx: AppContext = Depends(get_context)):
        ctx.settings.save_draft(draft)
        return {"success": True}

    @app.post("/schedule/recalc")
    async def recalc_schedule(request: ScheduleRequest):
        """Recompute derived line values and totals for an in-progress form."""
        lines = [apply_line(ScheduleLine.from_dict(item)) for item in request.schedule]
        totals = recalc_totals(lines)
        return {
            "schedule": [line.to_dict() for line in lines],
            "totals": totals.to_dict(),
            "formatted": {
                "totalCost": format_currency(totals.total_cost),
                "totalApexValue": format_currency(totals.total_apex_value),
                "totalProfit": format_currency(totals.total_profit),
            },
        }

    # ------------------------------------------------------------------
    # Admin routes
    # ------------------------------------------------------------------

    admin = [Depends(require_admin)]

    @app.delete("/submissions/{submission_id}", dependencies=admin)
    async def delete_submission(submission_id: int, ctx: AppContext = Depends(get_context)):
        result = await ctx.service.delete_po(submission_id)
        if not result["success"]:
            return JSONResponse(status_code=404, content=result)
        return result

    @app.post("/submissions/{submission_id}/resend", dependencies=admin)
    async def resend_submission(submission_id: int, ctx: AppContext = Depends(get_context)):
        result = await ctx.engine.resend(submission_id)
        return result.to_dict()

    @app.post("/admin/push", dependencies=admin)
    async def push_pending(ctx: AppContext = Depends(get_context)):
        result = await ctx.engine.push_pending(trigger="manual")
        return {
            "attempted": result.attempted,
            "sent": result.sent,
            "failed": result.failed,
            "skipped": result.skipped,
        }

    @app.post("/admin/resend", dependencies=admin)
    async def resend_many(request: IdsRequest, ctx: AppContext = Depends(get_context)):
        delivered = await ctx.engine.resend_many(request.ids)
        return {"requested": len(request.ids), "delivered": delivered}

    @app.post("/admin/delete", dependencies=admin)
    async def delete_many(request: IdsRequest, ctx: AppContext = Depends(get_context)):
        deleted = await ctx.engine.delete_many(request.ids)
        return {"requested": len(request.ids), "deleted": deleted}

    @app.post("/admin/test", dependencies=admin)
    async def test_post(ctx: AppContext = Depends(get_context)):
        result = await ctx.engine.test_post()
        return result.to_dict()

    @app.get("/admin/config", dependencies=admin)
    async def get_config(ctx: AppContext = Depends(get_context)):
        return {
            "remote": ctx.remote_config.to_dict(),
            "sync": ctx.sync_settings.to_dict(),
        }

    @app.put("/admin/config", dependencies=admin)
    async def update_config(update: ConfigUpdate, ctx: AppContext = Depends(get_context)):
        config = ctx.update_remote_config(endpoint=update.endpoint, api_key=update.api_key)
        return {"success": True, "remote": config.to_dict()}

    @app.put("/admin/pin", dependencies=admin)
    async def update_pin(update: PinUpdate, ctx: AppContext = Depends(get_context)):
        ctx.settings.set_admin_pin(update.new_pin)
        return {"success": True}

    @app.get("/admin/retry-queue", dependencies=admin)
    async def list_retry_queue(ctx: AppContext = Depends(get_context)):
        return {"entries": [entry.to_dict() for entry in ctx.retry_queue.entries()]}

    @app.post("/admin/retry-queue/process", dependencies=admin)
    async def process_retry_queue(ctx: AppContext = Depends(get_context)):
        processed = await ctx.engine.process_retry_queue()
        return {"processed": processed, "remaining": len(ctx.retry_queue)}

    @app.get("/admin/stats", dependencies=admin)
    async def get_stats(ctx: AppContext = Depends(get_context)):
        result = await ctx.service.get_stats()
        if ctx.scheduler is not None:
            result["scheduler"] = {
                "status": ctx.scheduler.status.value,
                **ctx.scheduler.stats.to_dict(),
            }
        return result

    @app.get("/admin/export", dependencies=admin)
    async def export_data(ctx: AppContext = Depends(get_context)):
        return await ctx.service.export_data()

    return app


app = create_app()
