"""
CLI entrypoint for the expired-token prune job. Run from cron, e.g.:

  python -m gatehouse.prune_tokens

Or hourly: 0 * * * * cd /path/to/gatehouse && .venv/bin/python -m gatehouse.prune_tokens
"""

import logging
import sys

from gatehouse.core.config import get_settings
from gatehouse.core.database import SessionLocal
from gatehouse.services.tokens import prune_expired_tokens

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Delete tokens that expired more than TOKEN_PRUNE_HOURS ago."""
    settings = get_settings()
    db = SessionLocal()
    try:
        deleted = prune_expired_tokens(db, settings)
        logger.info("Token prune completed: tokens_deleted=%s", deleted)
        return 0
    except Exception as e:
        logger.exception("Token prune job failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
