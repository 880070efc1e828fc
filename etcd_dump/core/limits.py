"""Process resource limit adjustment."""

import resource

from etcd_dump.core.exceptions import LimitQueryError, LimitSetError
from etcd_dump.core.logging import get_logger

logger = get_logger(module="limits")


def raise_fd_limit() -> None:
    """Raise the soft open-file limit to the hard limit.

    Every snapshot task may hold an output file open while its neighbours
    wait on the network, so this must run before any task is spawned. The
    change lasts for the rest of the process.

    Raises:
        LimitQueryError: If the current limits cannot be read
        LimitSetError: If the platform refuses the new soft limit
    """
    try:
        soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    except (OSError, ValueError) as e:
        raise LimitQueryError(
            f"Failed to get current max open files limit: {e}"
        ) from e

    if soft == hard:
        logger.debug("fd_limit_already_max", soft=soft, hard=hard)
        return

    try:
        resource.setrlimit(resource.RLIMIT_NOFILE, (hard, hard))
    except (OSError, ValueError) as e:
        raise LimitSetError(f"Failed to set max open files limit: {e}") from e

    logger.info("fd_limit_raised", previous=soft, current=hard)
