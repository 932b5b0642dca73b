"""SQLAlchemy ORM models for the EstateShare service."""

from estateshare.models.base import Base  # noqa: F401
from estateshare.models.user import User, UserRole  # noqa: F401
from estateshare.models.property import Property, PropertyInvestor, PropertyStatus  # noqa: F401
from estateshare.models.transaction import Transaction, TransactionStatus, TransactionType  # noqa: F401
from estateshare.models.voting import Vote, VoteChoice, Voting, VotingStatus  # noqa: F401
from estateshare.models.audit_log import AuditLog  # noqa: F401
