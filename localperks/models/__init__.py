"""
Database models for the LocalPerks points engine.
Ledger, rewards, redemptions and vouchers.
"""
from .tenant import Tenant, TenantPointsConfig
from .customer import Customer
from .ledger import LedgerEntry, LedgerEntryType, LedgerEntryStatus, LedgerSource
from .reward import Reward, RewardType, Redemption
from .voucher import Voucher, VoucherStatus

__all__ = [
    'Tenant',
    'TenantPointsConfig',
    'Customer',
    # Points ledger
    'LedgerEntry',
    'LedgerEntryType',
    'LedgerEntryStatus',
    'LedgerSource',
    # Rewards & vouchers
    'Reward',
    'RewardType',
    'Redemption',
    'Voucher',
    'VoucherStatus',
]
