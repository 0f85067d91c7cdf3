"""Commerce bounded context — order lifecycle and inventory consistency.

Orders, their payments, product stock and the audit trail live in one domain
so that a status change, its stock movement and its audit row commit in a
single unit of work.
"""

import structlog
from protean.domain import Domain

commerce = Domain(name="commerce")

logger = structlog.get_logger(__name__)
