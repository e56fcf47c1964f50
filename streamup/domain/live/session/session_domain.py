"""Session domain service scoped to one account context."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import ValidationError

from streamup.app_config import AppEnvironConfig, get_app_environ_config
from streamup.domain.progression import InMemoryProgressionStore, ProgressionEngine, RedisProgressionStore
from streamup.domain.utils.idgen import new_session_id
from streamup.schemas import Session, SessionState
from streamup.schemas.schema_utils import utc_now
from streamup.services.integrations.demo import (
    DemoAccountStatsProvider,
    DemoCapabilityProvider,
    DemoLifecycleTransport,
    DemoRealtimeChannel,
)
from streamup.services.integrations.interfaces import (
    AccountStatsProvider,
    CapabilityProvider,
    LifecycleTransport,
    RealtimeChannel,
)
from streamup.shared.storage.redis import RedisManager
from streamup.utils.app_errors import InvalidSessionConfig

from .session_controller import SessionController
from .session_models import SessionCreateParams

ChannelFactory = Callable[[str], RealtimeChannel]


class SessionService:
    """Creates and tracks the sessions of one account.

    Collaborators are injected; nothing here is shared process-wide. The
    account's ``ProgressionEngine`` is handed to every session it creates.
    """

    def __init__(
        self,
        account_id: str,
        username: str,
        *,
        capability: CapabilityProvider,
        transport: LifecycleTransport,
        channel_factory: ChannelFactory,
        progression: ProgressionEngine | None = None,
        settings: AppEnvironConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.account_id = account_id
        self.username = username
        self._capability = capability
        self._transport = transport
        self._channel_factory = channel_factory
        self.progression = progression
        self._cfg = settings or get_app_environ_config()
        self._clock = clock
        self._sessions: dict[str, SessionController] = {}

    @classmethod
    def from_config(
        cls,
        account_id: str,
        username: str,
        *,
        settings: AppEnvironConfig | None = None,
        redis_manager: RedisManager | None = None,
        stats_provider: AccountStatsProvider | None = None,
    ) -> SessionService:
        """Build a service with DEMO_MODE collaborators.

        Raises:
            InvalidSessionConfig: If DEMO_MODE=false; real collaborators must
                then be injected through the constructor.
        """
        cfg = settings or get_app_environ_config()
        if not cfg.DEMO_MODE:
            logger.error("SessionService.from_config requires DEMO_MODE=true")
            raise InvalidSessionConfig("Session collaborators must be provided when demo mode is off.")

        if redis_manager is not None:
            store = RedisProgressionStore(redis_manager, cfg.REDIS_URL, cfg.PROGRESSION_KEY_PREFIX)
        else:
            store = InMemoryProgressionStore()
        progression = ProgressionEngine(account_id, store, stats_provider or DemoAccountStatsProvider())

        logger.info(f"SessionService initialized in DEMO_MODE (stubbed): account={account_id}")
        return cls(
            account_id,
            username,
            capability=DemoCapabilityProvider(),
            transport=DemoLifecycleTransport(),
            channel_factory=lambda _session_id: DemoRealtimeChannel(account_id, username),
            progression=progression,
            settings=cfg,
        )

    # ==================== SESSIONS ====================

    async def create_session(self, params: SessionCreateParams | dict[str, Any]) -> SessionController:
        """Validate, register with the transport and return a scheduled session.

        Raises InvalidSessionConfig for an empty title, an unknown category or
        a capacity outside 1..4.
        """
        if not isinstance(params, SessionCreateParams):
            try:
                params = SessionCreateParams.model_validate(params)
            except ValidationError as e:
                logger.info(f"Rejected session config: account={self.account_id} errors={e.error_count()}")
                raise InvalidSessionConfig() from e

        session = Session(
            session_id=new_session_id(),
            owner_id=params.owner_id,
            title=params.title,
            description=params.description,
            category=params.category,
            tags=params.tags,
            visibility=params.visibility,
            quality=params.quality,
            capacity=params.capacity,
            created_at=self._clock(),
        )
        await self._transport.create_session(session)

        controller = SessionController(
            session,
            username=self.username,
            capability=self._capability,
            transport=self._transport,
            channel=self._channel_factory(session.session_id),
            progression=self.progression,
            settings=self._cfg,
            clock=self._clock,
        )
        controller.start()
        self._sessions[session.session_id] = controller
        logger.info(f"Session created: {session.session_id} account={self.account_id}")
        return controller

    def get_session(self, session_id: str) -> SessionController | None:
        return self._sessions.get(session_id)

    def active_sessions(self) -> list[SessionController]:
        return [c for c in self._sessions.values() if c.status in SessionState.active_states()]

    def prune(self) -> int:
        """Forget sessions that reached a terminal state; returns how many."""
        finished = [sid for sid, c in self._sessions.items() if c.status not in SessionState.active_states()]
        for session_id in finished:
            del self._sessions[session_id]
        return len(finished)

