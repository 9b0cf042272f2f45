"""
contracts - Deployed Contract Functions

    regnet.user       self-service account and property operations
    regnet.registrar  approvals and registry-wide queries
"""

from .user import USER_FUNCTIONS, RechargeReceipt
from .registrar import REGISTRAR_FUNCTIONS
