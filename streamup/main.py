"""Scripted demo broadcast on the DEMO_MODE collaborators.

Goes live, races two guests for the single co-broadcast slot, chats,
then ends the session and logs the resulting metrics and progression.

Run:
    python -m streamup.main
"""

import asyncio

from loguru import logger

from streamup.app_config import AppEnvironConfig, get_app_environ_config
from streamup.domain.live.session import SessionController, SessionService
from streamup.shared.storage.redis import RedisManager
from streamup.shared.utils import init_logger, log_taskgroup_errors
from streamup.utils.app_errors import AppError

DEMO_ACCOUNT = "demo-account"
DEMO_USERNAME = "demo_host"


async def _accept_guest(controller: SessionController, invite_code: str, display_name: str) -> None:
    try:
        slot = await controller.coordinator.accept(invite_code, display_name=display_name)
        logger.info(f"Guest on screen: {slot.display_name} at {slot.position}")
    except AppError as e:
        e.log()


async def run_demo(settings: AppEnvironConfig | None = None) -> SessionService:
    cfg = settings or get_app_environ_config()
    redis_manager = RedisManager() if cfg.PROGRESSION_STORE == "redis" else None
    service = SessionService.from_config(DEMO_ACCOUNT, DEMO_USERNAME, settings=cfg, redis_manager=redis_manager)

    try:
        await service.progression.load()
        controller = await service.create_session(
            {"owner_id": DEMO_ACCOUNT, "title": "Demo broadcast", "category": "technology", "capacity": 2}
        )
        await controller.request_go_live()

        first = await controller.coordinator.invite("guest-1")
        second = await controller.coordinator.invite("guest-2")
        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(_accept_guest(controller, first.invite_code, "Guest One"))
                tg.create_task(_accept_guest(controller, second.invite_code, "Guest Two"))
                tg.create_task(controller.send_chat("Welcome to the demo!"))
        except* Exception as eg:
            log_taskgroup_errors(eg)

        controller.update_viewer_count(3)
        await controller.send_chat("/slow 2")
        await controller.tick()
        on_screen = len(controller.coordinator.slots)
        await controller.end()

        metrics = controller.metrics()
        snapshot = service.progression.snapshot()
        logger.info(
            f"Demo finished: peak_viewers={metrics.peak_viewer_count} co_broadcasters={on_screen} "
            f"xp={snapshot.experience_points} level={snapshot.level} perks={len(snapshot.unlocked_perk_ids)}"
        )
        service.prune()
        return service
    finally:
        if redis_manager is not None:
            await redis_manager.close_all()


def main() -> None:
    cfg = get_app_environ_config()
    init_logger(cfg.DEBUG, worker_name="streamup-demo")
    asyncio.run(run_demo(cfg))


if __name__ == "__main__":
    main()
