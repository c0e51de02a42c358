from .base import EntityState
from .inventory import ItemType, SerializedStatus, MovementType, SerializedProduct, QuantityProduct, StockMovement
from .documents import DocumentKind, DocumentStatus, PaymentType, Document, DocumentLine, DocumentSequence
from .cash import CashDirection, PaymentMethod, CashMovement, Expense
from .registers import (
    RegisterStatus,
    SnapshotType,
    VarianceType,
    InvestigationStatus,
    CashRegister,
    RegisterSnapshot,
    SettlementRecord,
    VarianceRecord,
)
from .returns import ReturnStatus, ReturnRequest
from .audit import AuditStatus, AuditEntry
from .settings import StoreSetting

__all__ = [
    'EntityState',
    'ItemType', 'SerializedStatus', 'MovementType',
    'SerializedProduct', 'QuantityProduct', 'StockMovement',
    'DocumentKind', 'DocumentStatus', 'PaymentType',
    'Document', 'DocumentLine', 'DocumentSequence',
    'CashDirection', 'PaymentMethod', 'CashMovement', 'Expense',
    'RegisterStatus', 'SnapshotType', 'VarianceType', 'InvestigationStatus',
    'CashRegister', 'RegisterSnapshot', 'SettlementRecord', 'VarianceRecord',
    'ReturnStatus', 'ReturnRequest',
    'AuditStatus', 'AuditEntry',
    'StoreSetting',
]
