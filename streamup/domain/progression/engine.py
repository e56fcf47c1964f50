"""Account-level progression: experience, levels, perks, badges, challenges.

One ``ProgressionEngine`` exists per account context and may be fed by
several live sessions at once. Every mutation runs under a single
``asyncio.Lock``; notifications produced by a call are collected while the
lock is held and delivered, in production order, before the call returns.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date, datetime

import orjson
from loguru import logger
from pydantic import ValidationError

from streamup.schemas import (
    BASE_XP_PER_LEVEL,
    AccountStats,
    Badge,
    Challenge,
    ChallengeType,
    Perk,
    ProgressionState,
    XPReason,
)
from streamup.schemas.notifications import (
    ActivityEvent,
    BadgeEarned,
    ChallengeCompleted,
    ChatMessageSent,
    CoBroadcastJoined,
    ExperienceAwarded,
    FollowerGained,
    LevelUp,
    LikeReceived,
    PerkUnlocked,
    ProgressionNotification,
    StreamEnded,
    StreamStarted,
)
from streamup.schemas.schema_utils import utc_now
from streamup.services.integrations.interfaces import AccountStatsProvider
from streamup.shared.observers import Observers
from streamup.utils.app_errors import InvalidAward

from .catalog import (
    BADGES,
    BADGES_BY_ID,
    PERKS,
    PERKS_BY_ID,
    XP_TABLE,
    generate_daily_challenges,
    generate_weekly_challenges,
    level_perks,
    requirement_met,
)
from .store import ProgressionStore


def level_for_xp(xp: int) -> int:
    return max(1, xp // BASE_XP_PER_LEVEL + 1)


def xp_floor(level: int) -> int:
    """Smallest experience total at which ``level`` is reached."""
    if level < 1:
        raise ValueError("level must be >= 1")
    return BASE_XP_PER_LEVEL * (level - 1)


class ProgressionEngine:
    def __init__(
        self,
        account_id: str,
        store: ProgressionStore,
        stats_provider: AccountStatsProvider | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.account_id = account_id
        self._store = store
        self._stats_provider = stats_provider
        self._clock = clock
        self._lock = asyncio.Lock()
        self._observers: Observers[ProgressionNotification] = Observers(f"progression:{account_id}")

        self._xp = 0
        self._perk_ids: list[str] = []
        self._badge_ids: list[str] = []

        now = clock()
        self._daily: list[Challenge] = generate_daily_challenges()
        self._weekly: list[Challenge] = generate_weekly_challenges()
        self._challenge_day: date = now.date()
        self._challenge_week: tuple[int, int] = _iso_week(now)

    # ==================== READ ====================

    @property
    def experience_points(self) -> int:
        return self._xp

    @property
    def level(self) -> int:
        return level_for_xp(self._xp)

    @property
    def unlocked_perks(self) -> list[Perk]:
        return [PERKS_BY_ID[perk_id] for perk_id in self._perk_ids]

    @property
    def earned_badges(self) -> list[Badge]:
        return [BADGES_BY_ID[badge_id] for badge_id in self._badge_ids]

    @property
    def daily_challenges(self) -> list[Challenge]:
        return [c.model_copy() for c in self._daily]

    @property
    def weekly_challenges(self) -> list[Challenge]:
        return [c.model_copy() for c in self._weekly]

    def experience_to_next_level(self) -> int:
        return xp_floor(self.level + 1) - self._xp

    def level_progress(self) -> float:
        """Fraction of the current level already earned, in [0, 1)."""
        return (self._xp - xp_floor(self.level)) / BASE_XP_PER_LEVEL

    def snapshot(self) -> ProgressionState:
        return ProgressionState(
            experience_points=self._xp,
            level=self.level,
            unlocked_perk_ids=list(self._perk_ids),
            earned_badge_ids=list(self._badge_ids),
        )

    # ==================== SUBSCRIPTION ====================

    def subscribe(self, listener) -> Callable[[], None]:
        """Register a sync or async listener for progression notifications."""
        return self._observers.subscribe(listener)

    def stream(self, maxsize: int = 0) -> asyncio.Queue:
        return self._observers.stream(maxsize)

    def close_stream(self, queue: asyncio.Queue) -> None:
        self._observers.close_stream(queue)

    # ==================== MUTATIONS ====================

    async def award_experience(self, points: int, reason: XPReason) -> None:
        if points <= 0:
            raise InvalidAward()

        out: list[ProgressionNotification] = []
        async with self._lock:
            await self._award_locked(points, reason, out)
            await self._save_locked()
        await self._publish(out)

    async def award_for(self, reason: XPReason, count: int = 1) -> None:
        """Award the fixed table value for ``reason``, ``count`` times over."""
        points = XP_TABLE.get(reason, 0) * count
        if points <= 0:
            raise InvalidAward()
        await self.award_experience(points, reason)

    async def check_for_new_unlocks(self) -> None:
        out: list[ProgressionNotification] = []
        async with self._lock:
            await self._scan_locked(out)
            if out:
                await self._save_locked()
        await self._publish(out)

    async def update_progress(self, challenge_type: ChallengeType, amount: int = 1) -> None:
        if amount <= 0:
            raise InvalidAward("Challenge progress must be positive.")

        out: list[ProgressionNotification] = []
        async with self._lock:
            self._advance_locked(challenge_type, amount)
            await self._complete_locked(out)
            if out:
                await self._save_locked()
        await self._publish(out)

    async def rollover_challenges(self, now: datetime | None = None) -> bool:
        """Regenerate the daily set on a new UTC day and the weekly set on a new ISO week."""
        now = now or self._clock()
        rolled = False
        async with self._lock:
            if now.date() != self._challenge_day:
                self._daily = generate_daily_challenges()
                self._challenge_day = now.date()
                rolled = True
            if _iso_week(now) != self._challenge_week:
                self._weekly = generate_weekly_challenges()
                self._challenge_week = _iso_week(now)
                rolled = True
        if rolled:
            logger.info(f"Challenges rolled over: account={self.account_id} day={now.date()}")
        return rolled

    async def handle_activity(self, event: ActivityEvent) -> None:
        """Translate one activity event into awards and challenge progress."""
        awards: list[tuple[XPReason, int]] = []
        progress: list[tuple[ChallengeType, int]] = []

        if isinstance(event, StreamStarted):
            awards.append((XPReason.STREAM_STARTED, 1))
            progress.append((ChallengeType.START_STREAM, 1))
        elif isinstance(event, StreamEnded):
            awards.append((XPReason.STREAM_COMPLETED, 1))
            minutes = int(event.duration_seconds // 60)
            if minutes > 0:
                progress.append((ChallengeType.STREAM_DURATION, minutes))
        elif isinstance(event, ChatMessageSent):
            awards.append((XPReason.CHAT_MESSAGE_SENT, 1))
            progress.append((ChallengeType.SEND_CHAT_MESSAGES, 1))
        elif isinstance(event, CoBroadcastJoined):
            awards.append((XPReason.CO_STREAM_JOINED, 1))
            progress.append((ChallengeType.INVITE_CO_STREAMER, 1))
        elif isinstance(event, LikeReceived):
            awards.append((XPReason.LIKE_RECEIVED, event.count))
            progress.append((ChallengeType.EARN_LIKES, event.count))
        elif isinstance(event, FollowerGained):
            awards.append((XPReason.FOLLOWER_GAINED, event.count))
            progress.append((ChallengeType.GAIN_FOLLOWERS, event.count))
        else:
            logger.warning(f"Ignoring unknown activity event: {type(event).__name__}")
            return

        out: list[ProgressionNotification] = []
        async with self._lock:
            for reason, count in awards:
                await self._award_locked(XP_TABLE[reason] * count, reason, out)
            for challenge_type, amount in progress:
                self._advance_locked(challenge_type, amount)
            await self._complete_locked(out)
            await self._save_locked()
        await self._publish(out)

    # ==================== PERSISTENCE ====================

    async def load(self) -> ProgressionState:
        """Replace in-memory state with the stored payload.

        Missing, undecodable or invalid data and backend errors all fall back
        to level 1 with no experience, perks or badges.
        """
        async with self._lock:
            state = await self._read_stored_state()
            self._xp = state.experience_points
            self._perk_ids = [p for p in dict.fromkeys(state.unlocked_perk_ids) if p in PERKS_BY_ID]
            self._badge_ids = [b for b in dict.fromkeys(state.earned_badge_ids) if b in BADGES_BY_ID]
            logger.info(
                f"Progression loaded: account={self.account_id} xp={self._xp} level={self.level} "
                f"perks={len(self._perk_ids)} badges={len(self._badge_ids)}"
            )
            return self.snapshot()

    async def save(self) -> None:
        async with self._lock:
            await self._save_locked()

    async def _read_stored_state(self) -> ProgressionState:
        try:
            packed = await self._store.load(self.account_id)
        except Exception as e:
            logger.warning(f"Progression load failed, using defaults: account={self.account_id} error={e!s}")
            return ProgressionState()

        if packed is None:
            return ProgressionState()

        try:
            state = ProgressionState.model_validate(orjson.loads(packed))
        except (orjson.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning(f"Stored progression is corrupt, using defaults: account={self.account_id} error={e!s}")
            return ProgressionState()

        # Stored level is informational only.
        return state.model_copy(update={"level": level_for_xp(state.experience_points)})

    async def _save_locked(self) -> None:
        payload = orjson.dumps(self.snapshot().model_dump(mode="json"))
        try:
            await self._store.save(self.account_id, payload)
        except Exception as e:
            logger.opt(exception=e).error(f"Progression save failed: account={self.account_id}")

    # ==================== INTERNALS (lock held) ====================

    async def _award_locked(self, points: int, reason: XPReason, out: list) -> None:
        old_level = self.level
        self._xp += points
        new_level = self.level

        if new_level > old_level:
            for crossed in range(old_level + 1, new_level + 1):
                for perk in level_perks(crossed):
                    self._unlock_perk_locked(perk, out)
            out.append(LevelUp(old_level=old_level, new_level=new_level))
            logger.info(f"Level up: account={self.account_id} {old_level} -> {new_level}")

        await self._scan_locked(out)

        out.append(
            ExperienceAwarded(
                points=points,
                reason=reason,
                total=self._xp,
                new_level=new_level if new_level > old_level else None,
            )
        )

    async def _scan_locked(self, out: list) -> None:
        stats = await self._read_stats()
        level = self.level
        for perk in PERKS:
            if perk.perk_id not in self._perk_ids and requirement_met(perk.requirement, stats, level):
                self._unlock_perk_locked(perk, out)
        for badge in BADGES:
            if badge.badge_id not in self._badge_ids and requirement_met(badge.requirement, stats, level):
                self._badge_ids.append(badge.badge_id)
                out.append(BadgeEarned(badge=badge))
                logger.info(f"Badge earned: account={self.account_id} badge={badge.badge_id}")

    def _unlock_perk_locked(self, perk: Perk, out: list) -> None:
        if perk.perk_id in self._perk_ids:
            return
        self._perk_ids.append(perk.perk_id)
        out.append(PerkUnlocked(perk=perk))
        logger.info(f"Perk unlocked: account={self.account_id} perk={perk.perk_id}")

    async def _read_stats(self) -> AccountStats:
        if self._stats_provider is None:
            return AccountStats()
        try:
            return await self._stats_provider.get_stats() or AccountStats()
        except Exception as e:
            logger.warning(f"Account stats unavailable, treating as zero: account={self.account_id} error={e!s}")
            return AccountStats()

    def _advance_locked(self, challenge_type: ChallengeType, amount: int) -> None:
        for challenge in (*self._daily, *self._weekly):
            if challenge.challenge_type == challenge_type and not challenge.is_completed:
                challenge.progress += amount

    async def _complete_locked(self, out: list) -> None:
        for challenge in (*self._daily, *self._weekly):
            if challenge.is_completed or challenge.progress < challenge.target:
                continue
            # Mark first so the reward below can never be granted twice.
            challenge.is_completed = True
            challenge.completed_at = self._clock()
            await self._award_locked(challenge.xp_reward, XPReason.CHALLENGE_COMPLETED, out)
            out.append(ChallengeCompleted(challenge=challenge.model_copy()))
            logger.info(f"Challenge completed: account={self.account_id} challenge={challenge.challenge_id}")

    async def _publish(self, notifications: list) -> None:
        for notification in notifications:
            await self._observers.publish(notification)


def _iso_week(value: datetime) -> tuple[int, int]:
    iso = value.isocalendar()
    return (iso[0], iso[1])
