from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from dotenv import load_dotenv
from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query, Request
from pydantic import BaseModel, Field

from guard.approval import ApprovalResponse
from guard.types import ApprovalDecision, ApprovalScope
from webapp.hook_manager import HookManager

load_dotenv()


class ApproveRequest(BaseModel):
    decision: ApprovalDecision
    scope: ApprovalScope = ApprovalScope.ONCE


class BlocklistRequest(BaseModel):
    patterns: list[str] = Field(default_factory=list)
    enabled: Optional[bool] = None


def require_auth(authorization: str | None = Header(default=None)) -> None:
    expected = os.getenv("VAULTGUARD_WEB_TOKEN", "").strip()
    if not expected:
        return
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token.")
    token = authorization.split(" ", 1)[1].strip()
    if token != expected:
        raise HTTPException(status_code=403, detail="Invalid token.")


def get_manager(request: Request) -> HookManager:
    return request.app.state.manager


def create_app(manager: Optional[HookManager] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        app.state.manager.close()

    app = FastAPI(title="Vault Guard Hook API", version="0.1.0", lifespan=lifespan)
    app.state.manager = manager or HookManager()

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/hooks/pre-tool-use", dependencies=[Depends(require_auth)])
    async def pre_tool_use(
        descriptor: Any = Body(default=None),
        mgr: HookManager = Depends(get_manager),
    ) -> dict[str, Any]:
        return await mgr.evaluate(descriptor)

    @app.get("/approvals", dependencies=[Depends(require_auth)])
    def list_approvals(mgr: HookManager = Depends(get_manager)) -> dict[str, Any]:
        return {"items": [p.model_dump() for p in mgr.pending()]}

    @app.post("/approvals/{request_id}", dependencies=[Depends(require_auth)])
    async def resolve_approval(
        request_id: str,
        req: ApproveRequest,
        mgr: HookManager = Depends(get_manager),
    ) -> dict[str, bool]:
        ok = await mgr.resolve(request_id, ApprovalResponse(decision=req.decision, scope=req.scope))
        if not ok:
            raise HTTPException(status_code=409, detail="No matching pending approval.")
        return {"ok": True}

    @app.post("/settings/blocklist", dependencies=[Depends(require_auth)])
    def update_blocklist(req: BlocklistRequest, mgr: HookManager = Depends(get_manager)) -> dict[str, Any]:
        return {"ok": True, "warnings": mgr.set_blocklist(req.patterns, req.enabled)}

    @app.get("/events", dependencies=[Depends(require_auth)])
    def get_events(
        limit: int = Query(50, ge=1, le=500),
        mgr: HookManager = Depends(get_manager),
    ) -> dict[str, Any]:
        return {"items": mgr.events(limit)}

    return app
