# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View stock levels, availability and stock movements",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Register serialized items and quantity products, edit identifiers",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_STOCK",
        "Adjust Stock",
        "Increase quantity stock through a manual adjustment",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_STOCK_DESTRUCTIVE",
        "Destructive Stock Adjustment",
        "Decrease quantity stock or delete products",
        PermissionCategory.INVENTORY,
    ),
]


# -- DOCUMENTS --

DOCUMENT_PERMISSIONS = [
    (
        "VIEW_DOCUMENTS",
        "View Documents",
        "View sale and purchase documents",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "CREATE_SALE",
        "Create Sale",
        "Create and edit draft sales",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "CREATE_PURCHASE",
        "Create Purchase",
        "Create and edit draft purchases",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "POST_DOCUMENT",
        "Post Document",
        "Post a draft document, applying stock and cash effects",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "CANCEL_DOCUMENT",
        "Cancel Document",
        "Cancel a posted document and reverse its effects",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "CREATE_RETURN",
        "Create Return",
        "Open a return request against a posted sale line",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "APPROVE_RETURN",
        "Approve Return",
        "Approve or reject pending return requests",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "PROCESS_RETURN",
        "Process Return",
        "Restock an approved return and pay out its refund",
        PermissionCategory.DOCUMENTS,
    ),
]


# -- CASH --

CASH_PERMISSIONS = [
    (
        "VIEW_CASH",
        "View Cash Ledger",
        "View cash movements and aggregates",
        PermissionCategory.CASH,
    ),
    (
        "RECORD_PAYMENT",
        "Record Payment",
        "Record payments against posted credit documents",
        PermissionCategory.CASH,
    ),
    (
        "RECORD_EXPENSE",
        "Record Expense",
        "Record a paid expense",
        PermissionCategory.CASH,
    ),
    (
        "RECORD_CASH_MOVEMENT",
        "Record Cash Movement",
        "Record manual cash in/out such as float top-ups and bank drops",
        PermissionCategory.CASH,
    ),
    (
        "CORRECT_CASH_MOVEMENT",
        "Correct Cash Movement",
        "Write compensating entries for recorded cash movements",
        PermissionCategory.CASH,
    ),
]


# -- REGISTERS --

REGISTER_PERMISSIONS = [
    (
        "OPERATE_REGISTER",
        "Operate Register",
        "Open and close the cash register, take snapshots",
        PermissionCategory.REGISTERS,
    ),
    (
        "RECONCILE_REGISTER",
        "Reconcile Register",
        "Mark a closed register as reconciled",
        PermissionCategory.REGISTERS,
    ),
    (
        "INVESTIGATE_VARIANCE",
        "Investigate Variance",
        "Update the investigation status of a cash variance",
        PermissionCategory.REGISTERS,
    ),
]


# -- AUDIT --

AUDIT_PERMISSIONS = [
    (
        "VIEW_AUDIT_LOG",
        "View Audit Log",
        "View audit entries and summaries",
        PermissionCategory.AUDIT,
    ),
]


PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + DOCUMENT_PERMISSIONS
    + CASH_PERMISSIONS
    + REGISTER_PERMISSIONS
    + AUDIT_PERMISSIONS
)
