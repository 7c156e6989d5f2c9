from __future__ import annotations

import logging
import os

from portal import db, repository
from portal.dependencies import get_db_path
from portal.models import UserRole

logger = logging.getLogger(__name__)


def bootstrap_admin(connection) -> None:
    external_id = os.getenv("ADMIN_BOOTSTRAP_EXTERNAL_ID")
    email = os.getenv("ADMIN_BOOTSTRAP_EMAIL")
    if not external_id or not email:
        return
    if repository.count_users(connection) > 0:
        return
    user = repository.create_user(
        connection,
        external_id=external_id.strip(),
        email=email.strip().lower(),
    )
    repository.assign_role(connection, user.id, UserRole.PLATFORM_ADMIN)
    logger.info("Bootstrapped platform admin %s", user.email)


def init_database() -> None:
    connection = db.connect(get_db_path())
    try:
        db.init_db(connection)
        bootstrap_admin(connection)
    finally:
        connection.close()


def configure_logging() -> None:
    log_level = os.getenv("PORTAL_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, log_level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(levelname)s [%(name)s] %(message)s",
        force=True,
    )
