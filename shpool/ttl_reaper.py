"""Reaps sessions that were created with a time to live.

New sessions to watch arrive on a queue as ``(session_name, reap_at)``
pairs, where ``reap_at`` is a :func:`time.monotonic` timestamp. Putting
``None`` on the queue closes it and stops the reaper. Each scheduled
entry carries a generation id so that a stale entry never kills a newer
session that happens to reuse the same name.
"""

from __future__ import annotations

import heapq
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, MutableMapping

__all__ = ["Reapable", "run"]

log = logging.getLogger(__name__)


@dataclass(order=True)
class Reapable:
    """A heap entry for a session to be reaped, ordered by ``reap_at``."""

    reap_at: float
    session_name: str = field(compare=False)
    gen_id: int = field(compare=False)


def _schedule(
    heap: list[Reapable], gen_ids: dict[str, int], session_name: str, reap_at: float
) -> None:
    gen_id = gen_ids.get(session_name, 0) + 1
    gen_ids[session_name] = gen_id
    log.info("scheduling %s:%d to be reaped at %r", session_name, gen_id, reap_at)
    heapq.heappush(heap, Reapable(reap_at=reap_at, session_name=session_name, gen_id=gen_id))


def _reap(
    reapable: Reapable,
    gen_ids: dict[str, int],
    shells: MutableMapping[str, Any],
    shells_lock: threading.Lock,
) -> None:
    log.info("waking up to reap %r", reapable)
    current_gen = gen_ids.get(reapable.session_name, 0)
    if current_gen != reapable.gen_id:
        log.info(
            "ignoring %s:%d because current gen is %d",
            reapable.session_name,
            reapable.gen_id,
            current_gen,
        )
        return

    with shells_lock:
        sess = shells.get(reapable.session_name)
        if sess is None:
            log.warning(
                "tried to kill '%s' but it wasn't in the shells tab", reapable.session_name
            )
            return
        try:
            sess.kill()
        except Exception as exc:
            log.warning("error trying to kill '%s': %r", reapable.session_name, exc)
        shells.pop(reapable.session_name, None)


def run(
    new_sess: "queue.Queue[tuple[str, float] | None]",
    shells: MutableMapping[str, Any],
    shells_lock: threading.Lock,
) -> None:
    """Run the reaper loop until ``None`` is received on ``new_sess``.

    Meant to be run in a dedicated thread. ``shells`` maps session names
    to objects with a ``kill()`` method and is guarded by ``shells_lock``.
    """
    heap: list[Reapable] = []
    gen_ids: dict[str, int] = {}

    while True:
        if not heap:
            # Nothing to watch: wait for a new session.
            msg = new_sess.get()
            if msg is None:
                log.info("bailing due to closed queue in empty heap loop")
                return
            _schedule(heap, gen_ids, *msg)
            continue

        timeout = max(0.0, heap[0].reap_at - time.monotonic())
        try:
            msg = new_sess.get(timeout=timeout)
        except queue.Empty:
            _reap(heapq.heappop(heap), gen_ids, shells, shells_lock)
            continue
        if msg is None:
            log.info("bailing due to closed queue")
            return
        _schedule(heap, gen_ids, *msg)