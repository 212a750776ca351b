from __future__ import annotations

import logging
from typing import Optional

from src.consular.config import settings
from src.consular.infra.db import inmemory as inmemory_repos
from src.consular.infra.db.models import Base
from src.consular.infra.db.session import create_db_engine, create_sqlalchemy_session_factory
from src.consular.infra.db.sql_repositories import (
    SqlAppointmentRepository,
    SqlConsularServiceRepository,
    SqlNotificationRepository,
    SqlOrganizationRepository,
    SqlParentalAuthorityRepository,
    SqlProfileRepository,
    SqlServiceRequestRepository,
    SqlUserDocumentRepository,
    SqlUserRepository,
)

logger = logging.getLogger(__name__)


def init_sql_repositories(database_url: Optional[str] = None, *, force: bool = False) -> bool:
    """Optionally switch in-memory repositories to SQL-backed implementations.

    Called from the application startup hook. When USE_SQL_REPOS is not
    enabled (and ``force`` is not set) or no database URL is configured, this
    is a no-op and the in-memory repositories remain active. Returns True
    when the SQL repositories were installed.
    """

    if not (settings.use_sql_repos or force):
        return False

    db_url = database_url or settings.database_url
    if not db_url:
        logger.warning("USE_SQL_REPOS is set but DATABASE_URL is empty; keeping in-memory repositories")
        return False

    engine = create_db_engine(db_url)

    # Create tables if they do not exist. A real deployment should manage the
    # schema through migrations.
    Base.metadata.create_all(engine)

    session_factory = create_sqlalchemy_session_factory(engine)

    # Services resolve repositories through the inmemory module at call time,
    # so rebinding the singletons switches every caller over.
    inmemory_repos.user_repository = SqlUserRepository(session_factory)
    inmemory_repos.profile_repository = SqlProfileRepository(session_factory)
    inmemory_repos.organization_repository = SqlOrganizationRepository(session_factory)
    inmemory_repos.consular_service_repository = SqlConsularServiceRepository(session_factory)
    inmemory_repos.request_repository = SqlServiceRequestRepository(session_factory)
    inmemory_repos.document_repository = SqlUserDocumentRepository(session_factory)
    inmemory_repos.notification_repository = SqlNotificationRepository(session_factory)
    inmemory_repos.appointment_repository = SqlAppointmentRepository(session_factory)
    inmemory_repos.parental_authority_repository = SqlParentalAuthorityRepository(session_factory)

    logger.info("SQL repositories initialised (%s)", engine.url.render_as_string(hide_password=True))
    return True
