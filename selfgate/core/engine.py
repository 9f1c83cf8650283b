"""
Verification engine: one object wiring the registry, codec, evaluator, dispatcher
and short links, parameterized by `EngineConfig` (mock vs production verifier,
QR vs link delivery, acceptance policy) instead of separate code paths.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from selfgate.core import codec
from selfgate.core.dispatcher import ChatPlatform, CompletionDispatcher, CompletionStatus
from selfgate.core.errors import LinkBuildError
from selfgate.core.evaluator import EvaluationPolicy, VerificationOutcome, evaluate
from selfgate.core.registry import SessionRegistry
from selfgate.observability.logging import log
from selfgate.render import qr
from selfgate.store.models import VerificationSession
from selfgate.store.shortlinks import ShortLinkResolver
from selfgate.verifier.self_app import build_self_app, universal_link

DELIVERY_QR = "qr"
DELIVERY_LINK = "link"

# Discord rejects link buttons with longer URLs
MAX_BUTTON_URL = 512


@dataclass(frozen=True)
class EngineConfig:
    self_endpoint: str = ""
    app_name: str = "Self Discord Verification"
    logo_url: str = ""
    scope: str = ""
    mock_passport: bool = False
    minimum_age: int = 18
    ofac: bool = True
    delivery_mode: str = DELIVERY_QR
    session_ttl_sec: int = 1800
    role_id: Optional[str] = None

    @property
    def policy(self) -> EvaluationPolicy:
        return EvaluationPolicy(enforce_ofac=self.ofac)


@dataclass(frozen=True)
class VerificationRequest:
    sessionId: str
    universalLink: str
    # URL for the Discord link button; None when the link is too long and no short-link base is configured
    buttonUrl: Optional[str] = None
    qrPng: Optional[bytes] = None
    qrName: Optional[str] = None


class VerificationEngine:
    def __init__(
        self,
        config: EngineConfig,
        platform: ChatPlatform,
        registry: Optional[SessionRegistry] = None,
        shortlinks: Optional[ShortLinkResolver] = None,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else SessionRegistry()
        self.shortlinks = shortlinks if shortlinks is not None else ShortLinkResolver()
        self.dispatcher = CompletionDispatcher(
            self.registry,
            platform,
            role_id=config.role_id,
            policy=config.policy,
        )

    def start_session(self, requester_id: str, origin_id: str) -> VerificationRequest:
        """
        Create a pending session and the Self request that carries its token.
        Raises LinkBuildError (after discarding the session) when the request or its
        QR code cannot be built.
        """
        self.sweep()
        session_id = self.registry.create(requester_id, origin_id)
        payload = codec.payload_for(self.registry.lookup(session_id))

        try:
            self_app = build_self_app(
                endpoint=self.config.self_endpoint,
                discord_user_id=str(requester_id),
                user_defined_data=payload.to_json(),
                app_name=self.config.app_name,
                logo_url=self.config.logo_url,
                scope=self.config.scope,
                minimum_age=self.config.minimum_age,
                ofac=self.config.ofac,
                mock_passport=self.config.mock_passport,
            )
            link = universal_link(self_app)
        except (LinkBuildError, ValueError) as e:
            self._discard(
                session_id, requester_id, "verification.link_error", "Failed to create Self verification link", e
            )
            if isinstance(e, LinkBuildError):
                raise
            raise LinkBuildError(str(e)) from e

        png = None
        name = None
        if self.config.delivery_mode == DELIVERY_QR:
            try:
                png = qr.render_png(link)
            except Exception as e:
                # qrcode raises DataOverflowError when the link exceeds the largest symbol
                self._discard(session_id, requester_id, "qr.error", "Failed to render Self QR code", e)
                raise LinkBuildError(f"QR rendering failed: {type(e).__name__}") from e
            name = qr.attachment_name(session_id)
            self.registry.attach(session_id, name)
            log("qr.created", "Created Self QR code", sessionId=session_id, userId=str(requester_id), qrName=name)
        else:
            log("link.created", "Created Self deep link for mobile", sessionId=session_id, userId=str(requester_id))

        return VerificationRequest(
            sessionId=session_id,
            universalLink=link,
            buttonUrl=self._button_url(link),
            qrPng=png,
            qrName=name,
        )

    def _discard(self, session_id: str, requester_id: str, event: str, message: str, exc: Exception) -> None:
        self.registry.consume(session_id)
        log(
            event,
            message,
            sessionId=session_id,
            discordUserId=str(requester_id),
            errorType=type(exc).__name__,
            error=str(exc),
        )

    def _button_url(self, link: str) -> Optional[str]:
        if len(link) <= MAX_BUTTON_URL:
            return link
        if not self.shortlinks.base_url:
            return None
        return self.shortlinks.shorten(link)

    def abandon(self, session_id: str) -> Optional[VerificationSession]:
        """Drop a session whose request never reached the member."""
        return self.registry.consume(session_id)

    def evaluate(self, raw: Mapping[str, Any]) -> VerificationOutcome:
        return evaluate(raw, self.config.policy)

    async def complete(self, token: Any, raw: Mapping[str, Any]) -> CompletionStatus:
        return await self.dispatcher.complete(token, raw)

    def sweep(self) -> List[VerificationSession]:
        expired = self.registry.sweep_expired(self.config.session_ttl_sec)
        if expired:
            log(
                "session.expired",
                "Dropped expired verification sessions",
                count=len(expired),
                sessionIds=[s.sessionId for s in expired],
            )
        return expired


def build_engine(settings, platform: ChatPlatform) -> VerificationEngine:
    config = EngineConfig(
        self_endpoint=settings.SELF_ENDPOINT,
        app_name=settings.SELF_APP_NAME,
        logo_url=settings.SELF_LOGO_URL,
        scope=settings.SELF_SCOPE,
        mock_passport=settings.SELF_MOCK_PASSPORT,
        minimum_age=settings.MINIMUM_AGE,
        ofac=settings.OFAC_CHECK,
        delivery_mode=settings.DELIVERY_MODE,
        session_ttl_sec=settings.SESSION_TTL_SEC,
        role_id=settings.DISCORD_VERIFIED_ROLE_ID or None,
    )
    return VerificationEngine(
        config,
        platform,
        shortlinks=ShortLinkResolver(settings.short_link_base()),
    )
