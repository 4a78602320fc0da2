"""
Account API Endpoints (onboarding and profile upkeep).
"""

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from typing import Optional

from backend.app.db.session import get_db
from backend.app.models.account import Account
from backend.app.models.enums import UserRole, STAFF_ROLES
from backend.app.schemas.account import AccountCreate, AccountUpdate, AccountResponse, AccountListResponse
from backend.app.core.exceptions import DuplicateResourceError
from backend.app.core.guards import require_role
from backend.app.domain.billing.ledger_service import LedgerService
from backend.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/admin/accounts", tags=["Admin - Accounts"])

ACCOUNT_ADMIN_ROLES = [UserRole.ADMIN, UserRole.MANAGER]


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    request: AccountCreate,
    current_user: dict = Depends(require_role(ACCOUNT_ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Onboard an account with a zero balance."""
    existing = await db.execute(select(Account.id).where(Account.enrollment == request.enrollment))
    if existing.scalar_one_or_none() is not None:
        raise DuplicateResourceError("Account", request.enrollment)

    account = Account(**request.model_dump(), balance=0, balance_version=0)
    db.add(account)
    await db.flush()
    await log_event(
        db,
        AuditAction.ACCOUNT_CREATED,
        actor=current_user,
        target_enrollment=account.enrollment,
    )
    await db.commit()
    return account


@router.put("/{enrollment}", response_model=AccountResponse)
async def update_account(
    request: AccountUpdate,
    enrollment: str = Path(..., description="Account enrollment"),
    current_user: dict = Depends(require_role(ACCOUNT_ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Update profile fields. Unset fields are left unchanged."""
    account = await LedgerService.get_account(db, enrollment)
    changes = request.model_dump(exclude_unset=True)
    for name, value in changes.items():
        setattr(account, name, value)

    await log_event(
        db,
        AuditAction.ACCOUNT_UPDATED,
        actor=current_user,
        target_enrollment=enrollment,
        metadata={"fields": sorted(changes)},
    )
    await db.commit()
    return account


@router.get("", response_model=AccountListResponse)
async def list_accounts(
    manager: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Enrollment or brand name"),
    current_user: dict = Depends(require_role(STAFF_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    filters = []
    if manager:
        filters.append(Account.manager == manager)
    if search:
        pattern = f"%{search}%"
        filters.append(or_(Account.enrollment.ilike(pattern), Account.brand_name.ilike(pattern)))

    total = (await db.execute(select(func.count(Account.id)).where(*filters))).scalar_one()
    result = await db.execute(select(Account).where(*filters).order_by(Account.enrollment))
    return AccountListResponse(accounts=result.scalars().all(), total=total)


@router.get("/{enrollment}", response_model=AccountResponse)
async def get_account(
    enrollment: str = Path(..., description="Account enrollment"),
    current_user: dict = Depends(require_role(STAFF_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await LedgerService.get_account(db, enrollment)
