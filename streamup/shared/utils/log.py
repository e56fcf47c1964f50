import sys
from traceback import TracebackException

from loguru import logger


def format_error(ex: BaseException) -> str:
    return "".join(TracebackException.from_exception(ex).format())


def init_logger(debug: bool | None = None, worker_name: str = "streamup") -> None:
    """Install the stderr sink; DEBUG selects the colored, verbose format."""
    if debug is None:
        from streamup.app_config import get_app_environ_config

        debug = get_app_environ_config().DEBUG

    logger.remove()

    if debug:
        logger_level = "DEBUG"
        logger_format = (
            f"<yellow>{worker_name}</yellow> | "
            "<green>{time:MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )
    else:
        logger_level = "INFO"
        logger_format = (
            f"{worker_name} | "
            "{time:MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{name}:{function}:{line} | "
            "{message}"
        )
    logger.add(sys.stderr, level=logger_level, format=logger_format)


def log_taskgroup_errors(err: BaseException) -> list[str]:
    errors = []
    subs = getattr(err, "exceptions", None)
    if subs and isinstance(subs, (list, tuple)):
        for idx, sub in enumerate(subs, 1):
            errors.append(f"TaskGroup sub-exception[{idx}]:\n{format_error(sub)}")
            logger.error(errors[-1])
    else:
        errors.append(format_error(err))
        logger.error(errors[-1])
    return errors
