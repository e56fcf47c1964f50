"""Static progression catalog: XP table, perks, badges and challenge sets.

Definition order is significant. The unlock scan walks ``PERKS`` and
``BADGES`` in the order below and notifies in that order.
"""

from streamup.schemas import (
    AccountStats,
    Badge,
    BadgeRarity,
    Challenge,
    ChallengeDuration,
    ChallengeType,
    Perk,
    PerkType,
    Requirement,
    RequirementKind,
    XPReason,
)

XP_TABLE: dict[XPReason, int] = {
    XPReason.STREAM_STARTED: 50,
    XPReason.STREAM_COMPLETED: 100,
    XPReason.LIKE_RECEIVED: 5,
    XPReason.FOLLOWER_GAINED: 25,
    XPReason.CHAT_MESSAGE_SENT: 2,
    XPReason.STREAM_WATCHED: 10,
    XPReason.CO_STREAM_JOINED: 30,
}


def _req(kind: RequirementKind, threshold: int) -> Requirement:
    return Requirement(kind=kind, threshold=threshold)


PERKS: tuple[Perk, ...] = (
    Perk(
        perk_id="perk_sparkle_effect",
        name="Sparkle Effect",
        description="Add sparkle animations to your stream",
        perk_type=PerkType.VISUAL_EFFECT,
        requirement=_req(RequirementKind.LIKES, 100),
    ),
    Perk(
        perk_id="perk_heart_explosion",
        name="Heart Explosion",
        description="Explosive heart effect for super likes",
        perk_type=PerkType.REACTION_ANIMATION,
        requirement=_req(RequirementKind.LIKES, 500),
    ),
    Perk(
        perk_id="perk_hd_streaming",
        name="HD Streaming",
        description="Stream in 720p HD quality",
        perk_type=PerkType.STREAM_QUALITY,
        requirement=_req(RequirementKind.FOLLOWERS, 50),
    ),
    Perk(
        perk_id="perk_1080p_streaming",
        name="Full HD Streaming",
        description="Stream in 1080p Full HD quality",
        perk_type=PerkType.STREAM_QUALITY,
        requirement=_req(RequirementKind.FOLLOWERS, 200),
    ),
    Perk(
        perk_id="perk_extra_costreamer",
        name="Extra Co-streamer Slot",
        description="Allow one additional co-streamer",
        perk_type=PerkType.CO_STREAM_SLOTS,
        requirement=_req(RequirementKind.LEVEL, 5),
    ),
    Perk(
        perk_id="perk_extended_stream",
        name="Extended Streaming",
        description="Stream for up to 4 hours continuously",
        perk_type=PerkType.STREAM_DURATION,
        requirement=_req(RequirementKind.STREAM_HOURS, 10),
    ),
    Perk(
        perk_id="perk_level_2_overlay",
        name="Custom Overlay",
        description="Unlock custom stream overlays",
        perk_type=PerkType.CUSTOM_OVERLAY,
        requirement=_req(RequirementKind.LEVEL, 2),
    ),
    Perk(
        perk_id="perk_advanced_moderation",
        name="Advanced Moderation",
        description="Access to advanced moderation tools",
        perk_type=PerkType.MODERATION_TOOLS,
        requirement=_req(RequirementKind.LEVEL, 10),
    ),
)

BADGES: tuple[Badge, ...] = (
    Badge(
        badge_id="badge_first_stream",
        name="First Stream",
        description="Completed your first livestream",
        icon="badge_first_stream",
        rarity=BadgeRarity.COMMON,
        requirement=_req(RequirementKind.STREAM_HOURS, 1),
    ),
    Badge(
        badge_id="badge_popular_streamer",
        name="Popular Streamer",
        description="Reached 100 followers",
        icon="badge_popular_streamer",
        rarity=BadgeRarity.RARE,
        requirement=_req(RequirementKind.FOLLOWERS, 100),
    ),
    Badge(
        badge_id="badge_engagement_master",
        name="Engagement Master",
        description="Earned 1000 likes",
        icon="badge_engagement_master",
        rarity=BadgeRarity.EPIC,
        requirement=_req(RequirementKind.LIKES, 1000),
    ),
    Badge(
        badge_id="badge_marathon_streamer",
        name="Marathon Streamer",
        description="Streamed for 10 hours total",
        icon="badge_marathon_streamer",
        rarity=BadgeRarity.RARE,
        requirement=_req(RequirementKind.STREAM_HOURS, 10),
    ),
)

PERKS_BY_ID: dict[str, Perk] = {perk.perk_id: perk for perk in PERKS}
BADGES_BY_ID: dict[str, Badge] = {badge.badge_id: badge for badge in BADGES}


def level_perks(level: int) -> list[Perk]:
    """Perks granted on reaching exactly ``level``."""
    return [
        perk
        for perk in PERKS
        if perk.requirement.kind == RequirementKind.LEVEL and perk.requirement.threshold == level
    ]


def requirement_met(requirement: Requirement, stats: AccountStats, level: int) -> bool:
    if requirement.kind == RequirementKind.LIKES:
        value = stats.total_likes
    elif requirement.kind == RequirementKind.FOLLOWERS:
        value = stats.follower_count
    elif requirement.kind == RequirementKind.LEVEL:
        value = level
    else:
        value = stats.total_stream_hours
    return value >= requirement.threshold


def generate_daily_challenges() -> list[Challenge]:
    return [
        Challenge(
            challenge_id="daily_stream_1",
            title="Go Live Today",
            description="Start a livestream",
            challenge_type=ChallengeType.START_STREAM,
            target=1,
            xp_reward=100,
            duration=ChallengeDuration.DAILY,
        ),
        Challenge(
            challenge_id="daily_likes_1",
            title="Earn 10 Likes",
            description="Get 10 likes on your streams today",
            challenge_type=ChallengeType.EARN_LIKES,
            target=10,
            xp_reward=50,
            duration=ChallengeDuration.DAILY,
        ),
        Challenge(
            challenge_id="daily_chat_1",
            title="Send 20 Messages",
            description="Send 20 chat messages",
            challenge_type=ChallengeType.SEND_CHAT_MESSAGES,
            target=20,
            xp_reward=30,
            duration=ChallengeDuration.DAILY,
        ),
    ]


def generate_weekly_challenges() -> list[Challenge]:
    return [
        Challenge(
            challenge_id="weekly_stream_1",
            title="Stream for 5 Hours",
            description="Stream for a total of 5 hours this week",
            challenge_type=ChallengeType.STREAM_DURATION,
            # minutes
            target=300,
            xp_reward=500,
            duration=ChallengeDuration.WEEKLY,
        ),
        Challenge(
            challenge_id="weekly_followers_1",
            title="Gain 5 Followers",
            description="Get 5 new followers this week",
            challenge_type=ChallengeType.GAIN_FOLLOWERS,
            target=5,
            xp_reward=200,
            duration=ChallengeDuration.WEEKLY,
        ),
    ]
