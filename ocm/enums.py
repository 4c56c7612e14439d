"""Enum definitions for client constants."""

from enum import Enum


class Role(str, Enum):
    """
    Membership roles within an organization.

    - OWNER: Organization owner (assign reviewers, manage users)
    - ADMIN: Business admin (same client-side affordances as owner)
    - MEMBER: Regular member (read cases, work tasks)
    - UNKNOWN: No verified membership, or a role string this client doesn't know
    """
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    UNKNOWN = "unknown"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_

    @classmethod
    def parse(cls, value: object) -> "Role":
        """Map a raw role string to a Role; anything unrecognized is UNKNOWN."""
        if not isinstance(value, str):
            return cls.UNKNOWN
        normalized = value.strip().lower()
        if cls.has_value(normalized):
            return cls(normalized)
        return cls.UNKNOWN


class CaseStatus(str, Enum):
    """
    Offboarding case status covering both lifecycle vocabularies.

    Review lifecycle:
        draft → submitted → under_review → approved → closed
                                         ↘ rejected → draft

    Simple (legacy) lifecycle:
        open / in_review / ready_to_close → closed
    """
    # Review lifecycle
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"

    # Simple lifecycle
    OPEN = "open"
    IN_REVIEW = "in_review"
    READY_TO_CLOSE = "ready_to_close"

    # Shared terminal status
    CLOSED = "closed"


class TaskStatus(str, Enum):
    """Task statuses the readiness mirror recognizes."""
    OPEN = "open"
    COMPLETE = "complete"


class IdentityState(str, Enum):
    """Resolution state of the caller's identity."""
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    ERROR = "error"


class AuditTrailState(str, Enum):
    """Load state of an audit trail; EMPTY and ERROR are never conflated."""
    LOADED = "loaded"
    EMPTY = "empty"
    ERROR = "error"


class ErrorKind(str, Enum):
    """User-facing classification of gateway failures."""
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    VALIDATION = "validation"
    INVITE = "invite"
    NETWORK = "network"
    UNKNOWN = "unknown"
