"""
Account schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List


class AccountCreate(BaseModel):
    """Onboard a wallet account."""
    enrollment: str = Field(..., min_length=1, max_length=100)
    brand_name: Optional[str] = Field(None, alias="brandName", max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    manager: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = Field(None, max_length=500)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    gst: Optional[str] = Field(None, max_length=50)

    class Config:
        populate_by_name = True


class AccountUpdate(BaseModel):
    """Profile upkeep. Balance is never writable here."""
    brand_name: Optional[str] = Field(None, alias="brandName", max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    manager: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = Field(None, max_length=500)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    gst: Optional[str] = Field(None, max_length=50)

    class Config:
        populate_by_name = True


class AccountResponse(BaseModel):
    id: int
    enrollment: str
    brand_name: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    manager: Optional[str]
    address: Optional[str]
    state: Optional[str]
    pincode: Optional[str]
    country: Optional[str]
    gst: Optional[str]
    balance: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class AccountListResponse(BaseModel):
    accounts: List[AccountResponse]
    total: int


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor: Optional[str]
    actor_role: Optional[str]
    action: str
    target_enrollment: Optional[str]
    target_order_id: Optional[str]
    meta_data: Optional[dict]
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    """Schema for audit trail list."""
    logs: List[AuditLogResponse]
    total: int
