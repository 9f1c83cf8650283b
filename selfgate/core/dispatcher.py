"""
Completion Dispatcher
---------------------
Turns an accepted proof into the Discord side effects, once per session.

The registry consume is the idempotency guard: a provider that calls back twice, or
two callbacks racing for one session, fire the role grant and DM at most once.
The grant and the DM are independent; a failure in one never skips the other, and
no collaborator fault escapes `complete`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional, Protocol

from selfgate.core import codec
from selfgate.core.evaluator import EvaluationPolicy, evaluate
from selfgate.core.registry import SessionRegistry
from selfgate.observability.logging import error_text, log

SUCCESS_TEXT = (
    "🎉 **Verification Successful!**\n\n"
    "✅ Your verification through Self.xyz has been completed successfully!\n\n"
    "**What's New:**\n"
    "• You've been granted the **Self.xyz Verified** role\n"
    "• You now have access to exclusive restricted channels\n"
    "• Check out the newly unlocked channels in the server\n\n"
    "Welcome to the verified community! 🚀"
)


class ChatPlatform(Protocol):
    async def fetch_member(self, origin_id: str, requester_id: str) -> Any: ...

    async def add_role(self, member: Any, role_id: str) -> None: ...

    async def send_direct_message(self, requester_id: str, text: str) -> None: ...


class CompletionStatus(str, Enum):
    DECODE_FAILED = "decode_failed"
    REJECTED = "rejected"
    UNKNOWN_SESSION = "unknown_session"
    COMPLETED = "completed"


class CompletionDispatcher:
    def __init__(
        self,
        registry: SessionRegistry,
        platform: ChatPlatform,
        role_id: Optional[str] = None,
        policy: EvaluationPolicy = EvaluationPolicy(),
        success_text: str = SUCCESS_TEXT,
    ) -> None:
        self.registry = registry
        self.platform = platform
        self.role_id = role_id or None
        self.policy = policy
        self.success_text = success_text

    async def complete(self, token: Any, raw: Mapping[str, Any]) -> CompletionStatus:
        payload = codec.decode(token)
        if payload is None:
            return CompletionStatus.DECODE_FAILED

        outcome = evaluate(raw, self.policy)
        if not outcome.accepted:
            log(
                "verification.rejected",
                "Proof rejected by acceptance policy",
                sessionId=payload.sessionId,
                reasonCode=outcome.reasonCode.value,
                **outcome.details(),
            )
            return CompletionStatus.REJECTED

        session = self.registry.consume(payload.sessionId)
        if session is None:
            log(
                "verification.unknown_session",
                "Verification for unknown session",
                sessionId=payload.sessionId,
            )
            return CompletionStatus.UNKNOWN_SESSION

        if session.requesterId != payload.requesterId or session.originId != payload.originId:
            log(
                "verification.requester_mismatch",
                "Token identifiers differ from the pending session; using the session's",
                sessionId=session.sessionId,
                tokenRequesterId=payload.requesterId,
                tokenOriginId=payload.originId,
            )

        await self._grant_access(session.sessionId, session.originId, session.requesterId)
        await self._notify(session.sessionId, session.requesterId)
        return CompletionStatus.COMPLETED

    async def _grant_access(self, session_id: str, origin_id: str, requester_id: str) -> None:
        if not self.role_id:
            log(
                "verification.no_role_configured",
                "Verified role not configured",
                guildId=origin_id,
                discordUserId=requester_id,
            )
            return
        try:
            member = await self.platform.fetch_member(origin_id, requester_id)
            await self.platform.add_role(member, self.role_id)
        except Exception as e:
            log(
                "verification.role_grant_failed",
                "Failed to update Discord roles for verified user",
                sessionId=session_id,
                guildId=origin_id,
                discordUserId=requester_id,
                errorType=type(e).__name__,
                error=error_text(e),
            )
            return
        log(
            "verification.role_assigned",
            "Assigned verified role",
            sessionId=session_id,
            guildId=origin_id,
            discordUserId=requester_id,
            roleId=self.role_id,
        )

    async def _notify(self, session_id: str, requester_id: str) -> None:
        try:
            await self.platform.send_direct_message(requester_id, self.success_text)
        except Exception as e:
            log(
                "verification.dm_failed",
                "Failed to DM user after verification",
                sessionId=session_id,
                discordUserId=requester_id,
                errorType=type(e).__name__,
                error=error_text(e),
            )
