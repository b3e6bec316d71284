"""
agency_services.parallel -- Concurrent fan-out of independent reads.

Each task is a callable taking a ``Session`` and returning a value.  With a
session factory the tasks run on a thread pool, each on its own short-lived
session that is closed afterwards.  Without one they run in order on the
supplied session, which keeps them inside the caller's unit of work.

Results are returned in task order.  The first task exception propagates
after all tasks have finished.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Sequence

from sqlalchemy.orm import Session, sessionmaker

from agency_kernel.logging_config import get_logger

logger = get_logger("services.parallel")

ReadTask = Callable[[Session], Any]

MAX_WORKERS = 8


def _run_isolated(session_factory: sessionmaker[Session], task: ReadTask) -> Any:
    session = session_factory()
    try:
        return task(session)
    finally:
        session.close()


def run_parallel(
    tasks: Sequence[ReadTask],
    session_factory: sessionmaker[Session] | None = None,
    session: Session | None = None,
) -> list[Any]:
    if session_factory is None:
        if session is None:
            raise ValueError("run_parallel needs a session_factory or a session")
        return [task(session) for task in tasks]

    if not tasks:
        return []

    logger.debug("parallel_reads_started", extra={"task_count": len(tasks)})
    with ThreadPoolExecutor(max_workers=min(MAX_WORKERS, len(tasks))) as executor:
        futures = [executor.submit(_run_isolated, session_factory, t) for t in tasks]
        return [f.result() for f in futures]
