from enum import Enum


class SyncMode(Enum):
    SMART = "smart"                            # Incremental, debounced, all active accounts
    SPECIFIC_ACCOUNT = "specific_account"      # One account, identified by account_id
    COMPREHENSIVE = "comprehensive"            # Forced full-window resync of all accounts
