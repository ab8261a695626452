"""
User Management Endpoints

CRUD operations for users within a tenant.

RBAC:
- List users: All authenticated users
- Get user: All authenticated users (own tenant only)
- Create user: Admin only
- Update user: Admin or self; role changes admin only
- Delete user: Admin only, never yourself
- A tenant always keeps at least one active admin
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from bizos.database import get_db
from bizos.models.user import User, UserRole
from bizos.models.tenant import Tenant
from bizos.models.audit import record_audit
from bizos.schemas.user import (
    UserResponse,
    UserCreate,
    UserUpdate,
    UserListResponse
)
from bizos.api.deps import (
    get_current_user,
    get_current_tenant,
    require_admin
)
from bizos.core.security import get_password_hash
from bizos.core.permissions import can_modify_user, PermissionDenied
from bizos.core.exceptions import UserNotFoundError
from bizos.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _load_user(db: Session, tenant: Tenant, user_id: str) -> User:
    user = db.query(User).filter(
        User.id == user_id,
        User.tenant_id == tenant.id
    ).first()
    if not user:
        raise UserNotFoundError(user_id)
    return user


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    role: UserRole = Query(None),
    is_active: bool = Query(None),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """List users in the current tenant, optionally filtered by role and status."""
    query = db.query(User).filter(User.tenant_id == tenant.id)

    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)

    total = query.count()

    offset = (page - 1) * page_size
    users = query.order_by(User.created_at.asc()).offset(offset).limit(page_size).all()

    logger.debug(f"Listed {len(users)} users for tenant {tenant.id}")

    return UserListResponse(
        users=users,
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return _load_user(db, tenant, user_id)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Create a user in the current tenant. Requires admin role."""
    existing_user = db.query(User).filter(
        User.tenant_id == tenant.id,
        User.email == user_data.email
    ).first()

    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User with this email already exists"
        )

    new_user = User(
        tenant_id=tenant.id,
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        role=user_data.role,
        is_active=True
    )

    db.add(new_user)
    db.flush()
    record_audit(
        db,
        action="user.created",
        resource_type="user",
        resource_id=new_user.id,
        tenant_id=tenant.id,
        actor_type="user",
        actor_id=current_user.id,
        details={"role": new_user.role.value},
    )
    db.commit()
    db.refresh(new_user)

    logger.info(f"User created: {new_user.id} by {current_user.id}")

    return new_user


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    user_data: UserUpdate,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Update user information.

    Admins can update anyone in the tenant, other users only themselves.
    Role and active-status changes require admin.
    """
    user = _load_user(db, tenant, user_id)

    if not can_modify_user(current_user, user):
        raise PermissionDenied("Not authorized to modify this user")

    update_data = user_data.model_dump(exclude_unset=True)

    if current_user.role != UserRole.ADMIN:
        if "role" in update_data and update_data["role"] != user.role:
            raise PermissionDenied("Only admins can change user roles")
        if "is_active" in update_data and update_data["is_active"] != user.is_active:
            raise PermissionDenied("Only admins can activate or deactivate users")

    loses_admin = (
        update_data.get("role", user.role) != UserRole.ADMIN
        or not update_data.get("is_active", user.is_active)
    )
    if user.role == UserRole.ADMIN and user.is_active and loses_admin:
        # An admin can demote or deactivate themselves; the tenant keeps one
        active_admins = db.query(User).filter(
            User.tenant_id == tenant.id,
            User.role == UserRole.ADMIN,
            User.is_active == True  # noqa: E712
        ).count()
        if active_admins <= 1:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tenant must keep at least one active admin"
            )

    for field, value in update_data.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)

    logger.info(f"User updated: {user.id} by {current_user.id}")

    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Hard-delete a user. Requires admin role."""
    user = _load_user(db, tenant, user_id)

    if user.id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    db.delete(user)
    record_audit(
        db,
        action="user.deleted",
        resource_type="user",
        resource_id=user_id,
        tenant_id=tenant.id,
        actor_type="user",
        actor_id=current_user.id,
    )
    db.commit()

    logger.info(f"User deleted: {user_id} by {current_user.id}")

    return None
