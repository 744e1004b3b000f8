from __future__ import annotations

import logging
from typing import Any, Optional

from guard.approval import ApprovalResponse, PendingApproval
from guard.config import DEFAULT_CONFIG_PATH, PolicyConfig, load_config
from guard.orchestrator import PolicyOrchestrator, build_orchestrator


class HookManager:
    """Owns the orchestrator behind the HTTP hook and tracks open prompts."""

    def __init__(
        self,
        config: Optional[PolicyConfig] = None,
        config_path: str = DEFAULT_CONFIG_PATH,
        platform: Optional[str] = None,
    ) -> None:
        self.config = config or load_config(config_path)
        self.logger = logging.getLogger("vaultguard-web")
        self.orchestrator: PolicyOrchestrator = build_orchestrator(
            self.config,
            self.logger,
            on_pending=self._on_pending,
            platform=platform,
        )

    async def evaluate(self, descriptor: Any) -> dict[str, Any]:
        return await self.orchestrator.pre_tool_use(descriptor)

    def pending(self) -> list[PendingApproval]:
        return self.orchestrator.approvals.pending()

    async def resolve(self, request_id: str, response: ApprovalResponse) -> bool:
        ok = await self.orchestrator.approvals.resolve(request_id, response)
        if ok:
            self._event("approval_received", {"request_id": request_id, **response.model_dump(mode="json")})
        return ok

    def set_blocklist(self, patterns: list[str], enabled: Optional[bool] = None) -> list[dict[str, str]]:
        warnings = self.orchestrator.settings.set_blocklist(patterns, enabled)
        self._event("blocklist_updated", {"count": len(patterns)})
        return [{"pattern": p, "warning": v.error or ""} for p, v in warnings]

    def events(self, limit: int = 50) -> list[dict[str, Any]]:
        if self.orchestrator.audit is None:
            return []
        return self.orchestrator.audit.recent(limit)

    def close(self) -> None:
        self.orchestrator.close()

    def _on_pending(self, pending: PendingApproval) -> None:
        self._event("approval_requested", {"pending": pending.model_dump()})

    def _event(self, event_type: str, data: dict[str, Any]) -> None:
        if self.orchestrator.audit is not None:
            self.orchestrator.audit.add_event(event_type, data)
