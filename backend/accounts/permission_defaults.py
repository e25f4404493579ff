# accounts/permission_defaults.py

ROLE_DEFAULTS = {
    "OWNER": {
        "properties.view",
        "properties.manage",
        "rent.view",
        "rent.manage",
        "late_fees.view",
        "late_fees.manage",
        "trust.view",
        "trust.manage",
        "trust.reconcile",
        "trust.reverse",
        "expenses.view",
        "expenses.manage",
        "reports.view",
        "reports.export",
        "accounting.batch",
    },
    "ADMIN": {
        "properties.view",
        "properties.manage",
        "rent.view",
        "rent.manage",
        "late_fees.view",
        "late_fees.manage",
        "trust.view",
        "trust.manage",
        "trust.reconcile",
        "trust.reverse",
        "expenses.view",
        "expenses.manage",
        "reports.view",
        "reports.export",
        "accounting.batch",
    },
    "MANAGER": {
        "properties.view",
        "properties.manage",
        "rent.view",
        "rent.manage",
        "late_fees.view",
        "late_fees.manage",
        "trust.view",
        "trust.manage",
        "expenses.view",
        "expenses.manage",
        "reports.view",
    },
    "ACCOUNTANT": {
        "properties.view",
        "rent.view",
        "late_fees.view",
        "trust.view",
        "trust.reconcile",
        "expenses.view",
        "expenses.manage",
        "reports.view",
        "reports.export",
    },
    "VIEWER": {
        "properties.view",
        "rent.view",
        "late_fees.view",
        "trust.view",
        "expenses.view",
        "reports.view",
    },
}


def all_permission_codes() -> set[str]:
    codes = set()
    for role_codes in ROLE_DEFAULTS.values():
        codes |= role_codes
    return codes
