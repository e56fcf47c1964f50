"""Co-broadcast slot table for one session.

The host's own tile is not a slot; a session of capacity N seats N - 1
guests. Capacity 1 therefore takes no invitations, and default placement
never reaches ``bottom_right`` (three guests fill the first three grid
positions); a guest only lands there through ``set_position``.

``accept`` holds one lock across lookup, capacity check, transport
confirmation and allocation so two racing accepts can never both take the
last slot. ``teardown`` takes the same lock.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta

from loguru import logger

from streamup.app_config import AppEnvironConfig, get_app_environ_config
from streamup.domain.utils.idgen import new_invite_code, new_slot_id
from streamup.schemas import (
    GRID_POSITIONS,
    Invitation,
    InvitationStatus,
    ParticipantSlot,
    Session,
    SessionState,
    SlotPosition,
)
from streamup.schemas.notifications import CoBroadcastNotification, ParticipantJoined, ParticipantLeft
from streamup.schemas.schema_utils import utc_now
from streamup.services.integrations.interfaces import LifecycleTransport
from streamup.shared.observers import Observers
from streamup.utils.app_errors import (
    InvalidTransition,
    InviteExpired,
    InviteNotFound,
    ParticipantNotFound,
    PositionTaken,
    SlotsFull,
)


class CoBroadcastCoordinator:
    def __init__(
        self,
        session: Session,
        transport: LifecycleTransport,
        settings: AppEnvironConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session = session
        self._transport = transport
        self._cfg = settings or get_app_environ_config()
        self._clock = clock

        self._slots: dict[str, ParticipantSlot] = {}
        self._invitations: dict[str, Invitation] = {}
        self._accept_lock = asyncio.Lock()

        self.events: Observers[CoBroadcastNotification] = Observers(f"co_broadcast:{session.session_id}")

    @property
    def session_id(self) -> str:
        return self._session.session_id

    @property
    def slots(self) -> list[ParticipantSlot]:
        """Occupied slots in arrival order."""
        return list(self._slots.values())

    @property
    def pending_invitations(self) -> list[Invitation]:
        return list(self._invitations.values())

    def get_slot(self, participant_id: str) -> ParticipantSlot:
        slot = self._slots.get(participant_id)
        if slot is None:
            raise ParticipantNotFound()
        return slot

    def _has_free_slot(self) -> bool:
        return len(self._slots) < self._session.guest_capacity

    def _require_on_air(self) -> None:
        if self._session.status not in SessionState.on_air_states():
            raise InvalidTransition("Co-broadcasting is only available while the session is live.")

    # ==================== INVITATIONS ====================

    async def invite(self, user_id: str) -> Invitation:
        self._require_on_air()
        if not self._has_free_slot():
            raise SlotsFull()

        now = self._clock()
        invitation = Invitation(
            invite_code=new_invite_code(),
            session_id=self.session_id,
            user_id=user_id,
            created_at=now,
            expires_at=now + timedelta(seconds=self._cfg.INVITE_TTL_SECONDS),
        )
        await self._transport.invite_co_broadcaster(invitation)
        self._invitations[invitation.invite_code] = invitation
        logger.info(f"Co-broadcast invitation sent: session={self.session_id} user={user_id}")
        return invitation

    def expire_invitations(self, now: datetime | None = None) -> list[Invitation]:
        """Drop invitations past their expiry; returns the dropped ones."""
        now = now or self._clock()
        expired = [inv for inv in self._invitations.values() if inv.is_expired(now)]
        for invitation in expired:
            invitation.status = InvitationStatus.EXPIRED
            del self._invitations[invitation.invite_code]
        if expired:
            logger.debug(f"Expired {len(expired)} invitation(s): session={self.session_id}")
        return expired

    # ==================== SLOTS ====================

    async def accept(self, invite_code: str, display_name: str | None = None) -> ParticipantSlot:
        async with self._accept_lock:
            invitation = self._invitations.get(invite_code)
            if invitation is None or invitation.status != InvitationStatus.PENDING:
                raise InviteNotFound()
            if invitation.is_expired(self._clock()):
                invitation.status = InvitationStatus.EXPIRED
                del self._invitations[invite_code]
                raise InviteExpired()
            self._require_on_air()

            existing = self._slots.get(invitation.user_id)
            if existing is not None:
                invitation.status = InvitationStatus.ACCEPTED
                del self._invitations[invite_code]
                return existing

            if not self._has_free_slot():
                raise SlotsFull()

            await self._transport.join_co_broadcast(self.session_id, invite_code, invitation.user_id)
            if self._session.status not in SessionState.on_air_states():
                await self._abandon_join(invitation)
                self._require_on_air()

            slot = ParticipantSlot(
                slot_id=new_slot_id(),
                participant_id=invitation.user_id,
                display_name=display_name or invitation.user_id,
                joined_at=self._clock(),
                position=self._default_position(),
            )
            self._slots[slot.participant_id] = slot
            invitation.status = InvitationStatus.ACCEPTED
            self._invitations.pop(invite_code, None)

        logger.info(
            f"Co-broadcaster joined: session={self.session_id} participant={slot.participant_id} "
            f"position={slot.position}"
        )
        await self.events.publish(ParticipantJoined(session_id=self.session_id, slot=slot))
        return slot

    async def _abandon_join(self, invitation: Invitation) -> None:
        # The session left the air while the transport was confirming.
        invitation.status = InvitationStatus.CANCELLED
        self._invitations.pop(invitation.invite_code, None)
        try:
            await self._transport.leave_co_broadcast(self.session_id, invitation.user_id)
        except Exception as e:
            logger.warning(f"Transport leave failed for abandoned join: session={self.session_id} error={e!s}")
        logger.info(f"Co-broadcast join abandoned: session={self.session_id} user={invitation.user_id}")

    def _default_position(self) -> SlotPosition:
        if self._session.capacity == 2:
            return SlotPosition.SPLIT_SCREEN
        taken = {slot.position for slot in self._slots.values()}
        for position in GRID_POSITIONS:
            if position not in taken:
                return position
        return SlotPosition.PICTURE_IN_PICTURE

    async def leave(self, participant_id: str) -> ParticipantSlot:
        """Participant-initiated departure; the transport already knows."""
        slot = self._slots.pop(participant_id, None)
        if slot is None:
            raise ParticipantNotFound()
        logger.info(f"Co-broadcaster left: session={self.session_id} participant={participant_id}")
        await self.events.publish(ParticipantLeft(session_id=self.session_id, slot=slot))
        return slot

    async def remove(self, participant_id: str) -> ParticipantSlot:
        """Host-initiated removal."""
        slot = self._slots.pop(participant_id, None)
        if slot is None:
            raise ParticipantNotFound()
        try:
            await self._transport.leave_co_broadcast(self.session_id, participant_id)
        except Exception as e:
            logger.warning(f"Transport leave failed after removal: session={self.session_id} error={e!s}")
        logger.info(f"Co-broadcaster removed: session={self.session_id} participant={participant_id}")
        await self.events.publish(ParticipantLeft(session_id=self.session_id, slot=slot, removed_by_host=True))
        return slot

    def set_muted(self, participant_id: str, muted: bool) -> ParticipantSlot:
        return self._update(participant_id, is_muted=muted)

    def set_video_enabled(self, participant_id: str, enabled: bool) -> ParticipantSlot:
        return self._update(participant_id, is_video_enabled=enabled)

    def set_position(self, participant_id: str, position: SlotPosition) -> ParticipantSlot:
        slot = self.get_slot(participant_id)
        if any(s.position == position for pid, s in self._slots.items() if pid != participant_id):
            raise PositionTaken()
        return self._update(slot.participant_id, position=position)

    def _update(self, participant_id: str, **changes) -> ParticipantSlot:
        slot = self.get_slot(participant_id)
        if all(getattr(slot, key) == value for key, value in changes.items()):
            return slot
        updated = slot.model_copy(update=changes)
        self._slots[participant_id] = updated
        return updated

    # ==================== TEARDOWN ====================

    async def teardown(self) -> None:
        """Cancel outstanding invitations and release every slot.

        Waits for an in-flight ``accept`` so no slot is written after teardown.
        """
        async with self._accept_lock:
            for invitation in self._invitations.values():
                invitation.status = InvitationStatus.CANCELLED
            cancelled = len(self._invitations)
            self._invitations.clear()

            slots, self._slots = list(self._slots.values()), {}
        for slot in slots:
            await self.events.publish(ParticipantLeft(session_id=self.session_id, slot=slot, removed_by_host=True))
        logger.info(
            f"Co-broadcast torn down: session={self.session_id} slots={len(slots)} invitations={cancelled}"
        )
