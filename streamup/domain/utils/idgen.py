from ulid import ULID


def new_ulid(prefix: str | None = None) -> str:
    value = str(ULID()).lower()
    return f"{prefix}{value}" if prefix else value


def new_session_id() -> str:
    return new_ulid("se_")


def new_message_id() -> str:
    return new_ulid("msg_")


LOCAL_MESSAGE_PREFIX = "local_"


def new_local_message_id() -> str:
    return new_ulid(LOCAL_MESSAGE_PREFIX)


def new_invite_code() -> str:
    return new_ulid("inv_")


def new_slot_id() -> str:
    return new_ulid("sl_")
