"""
Permission System (RBAC)

Three roles in a strict hierarchy: admin > member > viewer.

- viewers read workflows, events, confirmations and the tool catalogue;
- members also create workflows, emit events and answer confirmations;
- admins also manage users, event subscriptions, tool definitions and read
  the audit log.
"""
from typing import Optional
from fastapi import HTTPException, status
from bizos.models.user import User, UserRole


class PermissionDenied(HTTPException):
    """Custom exception for permission denied errors."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


def can_modify_user(current_user: User, target_user: User) -> bool:
    """Admins can modify anyone in their tenant; users can modify themselves."""
    if current_user.role == UserRole.ADMIN:
        return True
    return current_user.id == target_user.id


def can_modify_workflow(current_user: User, created_by: Optional[str]) -> bool:
    """Members and admins edit any workflow in the tenant."""
    return current_user.role != UserRole.VIEWER


def can_delete_workflow(current_user: User, created_by: Optional[str]) -> bool:
    """Admins delete any workflow; members only the ones they created."""
    if current_user.role == UserRole.ADMIN:
        return True
    if current_user.role == UserRole.VIEWER:
        return False
    return created_by is not None and current_user.id == created_by
