from enum import Enum


class ModuleKey(str, Enum):
    CHART_OF_ACCOUNTS = "CHART_OF_ACCOUNTS"
    TAX = "TAX"
    JOURNAL = "JOURNAL"
    PERIODS = "PERIODS"
    INVOICES = "INVOICES"
    BILLS = "BILLS"
    PAYMENTS = "PAYMENTS"
    REPORTS = "REPORTS"


MODULE_DEFINITIONS: list[tuple[ModuleKey, str]] = [
    (ModuleKey.CHART_OF_ACCOUNTS, "Chart of Accounts"),
    (ModuleKey.TAX, "Tax"),
    (ModuleKey.JOURNAL, "Journal"),
    (ModuleKey.PERIODS, "Accounting Periods"),
    (ModuleKey.INVOICES, "Invoices"),
    (ModuleKey.BILLS, "Bills"),
    (ModuleKey.PAYMENTS, "Payments"),
    (ModuleKey.REPORTS, "Reports"),
]

MODULE_KEYS: list[str] = [module_key.value for module_key, _ in MODULE_DEFINITIONS]
MODULE_KEY_SET: set[str] = set(MODULE_KEYS)
