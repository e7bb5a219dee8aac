# Services package

from mongo_crud.services.audited import AuditedRecordStore

__all__ = [
    "AuditedRecordStore",
]
