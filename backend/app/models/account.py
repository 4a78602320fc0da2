"""
Wallet Account database model.

One account per end customer (brand); holds the prepaid balance.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base

PROFILE_FIELDS = ("address", "pincode", "state")


class Account(Base):
    """
    Account model.

    `balance` is written only by the ledger service through conditional
    updates that also bump `balance_version` and append a Transaction.
    Accounts are never deleted.
    """
    __tablename__ = "accounts"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    enrollment = Column(String(100), unique=True, index=True, nullable=False)

    # Identity / contact
    brand_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(30), nullable=True)
    manager = Column(String(100), nullable=True, index=True)

    # Shipping profile (required before any charge)
    address = Column(String(500), nullable=True)
    state = Column(String(100), nullable=True)
    pincode = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    gst = Column(String(50), nullable=True)

    # Wallet
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    balance_version = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def missing_profile_fields(self) -> list:
        return [name for name in PROFILE_FIELDS if not (getattr(self, name) or "").strip()]

    def __repr__(self):
        return f"<Account(id={self.id}, enrollment='{self.enrollment}', balance={self.balance})>"
