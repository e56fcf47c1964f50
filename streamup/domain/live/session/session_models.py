"""Session domain models."""

from pydantic import BaseModel, Field, field_validator

from streamup.schemas import MAX_CAPACITY, MIN_CAPACITY, StreamCategory, StreamQuality, Visibility


class SessionCreateParams(BaseModel):
    """Parameters for creating a session."""

    owner_id: str
    title: str
    description: str | None = None
    category: StreamCategory = StreamCategory.OTHER
    tags: list[str] = Field(default_factory=list)
    visibility: Visibility = Visibility.PUBLIC
    quality: StreamQuality = StreamQuality.MEDIUM
    capacity: int = Field(default=MIN_CAPACITY, ge=MIN_CAPACITY, le=MAX_CAPACITY)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value: list[str]) -> list[str]:
        return [tag.strip() for tag in value if tag.strip()]


class SessionMetrics(BaseModel):
    """Point-in-time metrics for display."""

    duration_seconds: float
    viewer_count: int
    peak_viewer_count: int
    total_watch_time: float
    engagement_rate: float
    co_broadcasters: int
    chat_messages: int
