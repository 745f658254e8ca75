"""
Shared module for cross-cutting concerns of the dine-in backend.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Order statuses, payment methods, limits

- shared.infrastructure: Persistence
  - db.py: SQLAlchemy engine and sessions, safe_commit()

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - money.py: Decimal totals and presentation rounding
  - clock.py: Injectable UTC clock
  - schemas.py: Pydantic request/response schemas

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import OrderStatus, PaymentMethod
    from shared.utils.exceptions import NotFoundError, TableUnavailableError
"""
