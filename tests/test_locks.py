from __future__ import annotations

import threading
import time
from datetime import date

from attendance_ledger.common.locks import KeyedLock


def test_same_key_is_mutually_exclusive():
    locks = KeyedLock()
    state = {"value": 0}

    def bump():
        for _ in range(10):
            with locks.hold(("hour_bank", 1)):
                current = state["value"]
                time.sleep(0.001)
                state["value"] = current + 1

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert state["value"] == 40
    assert len(locks) == 0


def test_entries_are_dropped_after_release():
    locks = KeyedLock()

    with locks.hold((1, date(2025, 3, 3))):
        with locks.hold((1, date(2025, 3, 3))):
            assert len(locks) == 1
        with locks.hold((2, date(2025, 3, 3))):
            assert len(locks) == 2
    assert len(locks) == 0


def test_entry_is_dropped_when_the_block_raises():
    locks = KeyedLock()

    try:
        with locks.hold("k"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert len(locks) == 0


def test_recompiling_days_leaves_no_lock_entries(container, punch):
    for employee_id in (1, 2):
        for day in range(3, 8):
            punch(employee_id, f"2025-03-0{day} 08:00:00", f"2025-03-0{day} 17:00:00")

    assert len(container.day_locks) == 0
    assert len(container.ledger_locks) == 0
