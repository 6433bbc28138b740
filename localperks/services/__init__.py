"""
Business logic services for the LocalPerks points engine.
"""
from .ledger_service import LedgerService, fold_balance, tier_for_balance
from .redemption_service import RedemptionService
from .voucher_service import VoucherService
from .points_config import get_tenant_points_config, save_tenant_points_config

__all__ = [
    'LedgerService',
    'fold_balance',
    'tier_for_balance',
    'RedemptionService',
    'VoucherService',
    'get_tenant_points_config',
    'save_tenant_points_config',
]
