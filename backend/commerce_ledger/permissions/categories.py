# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and display."""
    INVENTORY = "INVENTORY"
    DOCUMENTS = "DOCUMENTS"
    CASH = "CASH"
    REGISTERS = "REGISTERS"
    AUDIT = "AUDIT"
