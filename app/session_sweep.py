"""
CLI entrypoint for the expired-session sweep. Run from cron, e.g.:

  python -m app.session_sweep

Or hourly: 0 * * * * cd /path/to/erp-access && .venv/bin/python -m app.session_sweep
"""

import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.logging import configure_logging
from app.services.tokens import purge_expired_sessions

logger = logging.getLogger(__name__)


def main() -> int:
    """Delete sessions whose expires_at has passed."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    if not settings.SESSION_SWEEP_ENABLED:
        logger.info("Session sweep is disabled (SESSION_SWEEP_ENABLED=false); skipping.")
        return 0
    db = SessionLocal()
    try:
        deleted = purge_expired_sessions(db)
        logger.info("Session sweep completed: sessions_deleted=%s", deleted)
        return 0
    except Exception as e:
        logger.exception("Session sweep failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
