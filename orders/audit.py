# orders/audit.py
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

SOFT_DELETE_KEYS = ('soft_deleted', 'deleted_at', 'deleted_by', 'previous_status')


@dataclass
class SoftDeleteAudit:
    """Soft-delete marker stored in ``Order.notes``."""
    deleted_at: datetime
    deleted_by: Optional[str] = 'ADMIN'
    previous_status: Optional[str] = None
    soft_deleted: bool = True

    def apply(self, notes):
        """Merge this marker into an existing notes blob, keeping other keys."""
        merged = dict(notes or {})
        data = asdict(self)
        data['deleted_at'] = self.deleted_at.isoformat()
        merged.update(data)
        return merged

    @staticmethod
    def clear(notes):
        """Drop the soft-delete keys from a notes blob, keeping everything else."""
        return {key: value for key, value in (notes or {}).items() if key not in SOFT_DELETE_KEYS}

    @staticmethod
    def read(notes):
        notes = notes or {}
        if not notes.get('soft_deleted'):
            return None
        return SoftDeleteAudit(
            deleted_at=datetime.fromisoformat(notes['deleted_at']),
            deleted_by=notes.get('deleted_by'),
            previous_status=notes.get('previous_status'),
        )
