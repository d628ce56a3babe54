from __future__ import annotations

import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def main() -> int:
    """Import the worker app and confirm the outcome-delivery task is wired."""
    try:
        from celery_app import celery
        from paycore.celery_app import REPORT_TASK

        import paycore.tasks.report_tasks  # noqa: F401

        if REPORT_TASK not in celery.tasks:
            print(f"error: {REPORT_TASK} is not registered", file=sys.stderr)
            return 1
        route = (celery.conf.task_routes or {}).get(REPORT_TASK) or {}
        print(f"ok: broker={celery.conf.broker_url} report_queue={route.get('queue', 'default')}")
        return 0
    except Exception as exc:
        print(f"error: failed to import celery_app:celery -> {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
