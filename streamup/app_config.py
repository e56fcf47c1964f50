from pydantic import BaseModel, Field

from streamup.shared.config import EnvironConfig, config


class AppEnvironConfig(BaseModel):
    # When enabled, external collaborators (capture, transport, realtime) use in-process stubs.
    DEMO_MODE: bool = True
    DEBUG: bool = False

    # Progression persistence
    REDIS_URL: str = "redis://localhost:6379"
    PROGRESSION_KEY_PREFIX: str = "streamup:progression"
    # "memory" or "redis"; selects the progression store built by the demo runner.
    PROGRESSION_STORE: str = "memory"

    # Chat
    CHAT_MAX_MESSAGE_LENGTH: int = Field(default=500, ge=1)
    CHAT_HISTORY_LIMIT: int = Field(default=50, ge=0)
    CHAT_COMMAND_PREFIX: str = "/"
    SLOW_MODE_DEFAULT_DELAY: float = Field(default=5.0, ge=0)

    # Co-broadcast
    INVITE_TTL_SECONDS: float = Field(default=300.0, gt=0)

    # Lifecycle
    CAPABILITY_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)
    # Interval of the per-session ticker; 0 disables the background task.
    SESSION_TICK_SECONDS: float = Field(default=1.0, ge=0)

    @classmethod
    def from_environ(cls, env: EnvironConfig) -> "AppEnvironConfig":
        return cls(
            DEMO_MODE=env.get_bool("DEMO_MODE", True),
            DEBUG=env.get_bool("DEBUG", False),
            REDIS_URL=env.get_str("REDIS_URL", "redis://localhost:6379"),
            PROGRESSION_KEY_PREFIX=env.get_str("PROGRESSION_KEY_PREFIX", "streamup:progression"),
            PROGRESSION_STORE=env.get_str("PROGRESSION_STORE", "memory"),
            CHAT_MAX_MESSAGE_LENGTH=env.get_int("CHAT_MAX_MESSAGE_LENGTH", 500),
            CHAT_HISTORY_LIMIT=env.get_int("CHAT_HISTORY_LIMIT", 50),
            CHAT_COMMAND_PREFIX=env.get_str("CHAT_COMMAND_PREFIX", "/"),
            SLOW_MODE_DEFAULT_DELAY=env.get_float("SLOW_MODE_DEFAULT_DELAY", 5.0),
            INVITE_TTL_SECONDS=env.get_float("INVITE_TTL_SECONDS", 300.0),
            CAPABILITY_TIMEOUT_SECONDS=env.get_float("CAPABILITY_TIMEOUT_SECONDS", 30.0),
            SESSION_TICK_SECONDS=env.get_float("SESSION_TICK_SECONDS", 1.0),
        )


_app_environ_config: AppEnvironConfig | None = None


def get_app_environ_config() -> AppEnvironConfig:
    global _app_environ_config
    if _app_environ_config is None:
        _app_environ_config = AppEnvironConfig.from_environ(config)
    return _app_environ_config
