"""
backend/authz.py

Project access policy (backend-enforced authorization).

Single source of truth for who may read, write or administer a project.
Every route that touches a project, or anything hanging off one (tasks,
notes, board media), goes through this module.

Pure Python logic - no FastAPI imports, no database access. Callers resolve
the project first; "project not found" is their failure, not ours.

Role grants:   owner > collaborator > (non-member)
Visibility:    public projects grant `read` to everyone
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Set

from backend.errors import AccessDenied
from backend.models import MemberRole, Project, Visibility


# ============================================================================
# Operation classes
# ============================================================================

class Operation(str, Enum):
    """Operation classes a request can ask for on a project."""

    READ = "read"    # view project, tasks, note, board
    WRITE = "write"  # edit fields, collaborators, tasks, note, board
    ADMIN = "admin"  # remove a member, delete project, delete note


# Role to operations mapping
ROLE_OPERATIONS: Dict[MemberRole, Set[Operation]] = {
    MemberRole.owner: {
        Operation.READ,
        Operation.WRITE,
        Operation.ADMIN,
    },
    MemberRole.collaborator: {
        Operation.READ,
        Operation.WRITE,
    },
}

# Operations anyone (member or not) gets from the project's visibility
VISIBILITY_OPERATIONS: Dict[Visibility, Set[Operation]] = {
    Visibility.private: set(),
    Visibility.public: {Operation.READ},
}


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


# ============================================================================
# Decision
# ============================================================================

def decide(project: Project, caller_id: Optional[int], operation: Operation) -> AccessDecision:
    """
    Decide whether caller_id may perform `operation` on `project`.

    Args:
        project: Resolved project record (with members)
        caller_id: Authenticated user id (None for anonymous)
        operation: Requested operation class

    Returns:
        AccessDecision; never raises, never mutates.

    Example:
        decide(private_project, stranger_id, Operation.READ) -> denied
        decide(public_project, stranger_id, Operation.READ) -> allowed
        decide(public_project, stranger_id, Operation.WRITE) -> denied
        decide(project, collaborator_id, Operation.ADMIN) -> denied
    """
    role = project.role_of(caller_id)

    if role is not None and operation in ROLE_OPERATIONS.get(role, set()):
        return AccessDecision(True, f"{role.value} may {operation.value}")

    if operation in VISIBILITY_OPERATIONS.get(project.visibility, set()):
        return AccessDecision(True, f"{project.visibility.value} project allows {operation.value}")

    if operation == Operation.ADMIN:
        return AccessDecision(False, "Only the project owner can do this")
    return AccessDecision(False, "Access denied")


def is_allowed(project: Project, caller_id: Optional[int], operation: Operation) -> bool:
    return decide(project, caller_id, operation).allowed


def require_access(project: Project, caller_id: Optional[int], operation: Operation) -> None:
    """
    Enforce the policy.

    Raises:
        AccessDenied: If the decision is a denial
    """
    decision = decide(project, caller_id, operation)
    if not decision.allowed:
        print(f"[AUTHZ] Denied: project_id={project.id}, user_id={caller_id}, op={operation.value}")
        raise AccessDenied(decision.reason)
