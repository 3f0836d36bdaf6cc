"""SQLAlchemy 2.0 ORM models for Gigboard.

Import all models here so Alembic and ``Base.metadata.create_all`` can
discover them via::

    from gigboard.models.db import Base  # noqa: F401

Every model must be imported at module level to register with the
``DeclarativeBase`` metadata.
"""

from gigboard.models.db.base import Base, TimestampMixin  # noqa: F401

# Quota accounting
from gigboard.models.db.account import ProposalAccount, RefreshTracker  # noqa: F401

# Profiles
from gigboard.models.db.profile import (  # noqa: F401
    EducationEntry,
    ExperienceEntry,
    PortfolioItem,
    Profile,
)

# Jobs and proposals
from gigboard.models.db.job import Job  # noqa: F401
from gigboard.models.db.proposal import (  # noqa: F401
    Proposal,
    ProposalMilestone,
    ProposalStatusHistory,
)
