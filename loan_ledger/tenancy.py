"""
Multi-Tenancy Support Module

Every loan, payment and cash account belongs to exactly one tenant. The
tenant is carried in a context variable and enforced by wrapping the storage
backend, mirroring row-level security in the hosted database.
"""

import contextvars
from contextlib import contextmanager
from typing import Dict, List, Optional, Any

from .storage import StorageInterface


TENANT_FIELD = "_tenant_id"

_current_tenant = contextvars.ContextVar('current_tenant', default=None)


def get_current_tenant() -> Optional[str]:
    """Get the current tenant ID for this context"""
    return _current_tenant.get()


def set_current_tenant(tenant_id: Optional[str]) -> None:
    """Set the current tenant ID for this context"""
    _current_tenant.set(tenant_id)


@contextmanager
def tenant_context(tenant_id: Optional[str]):
    """Context manager for temporary tenant switching"""
    token = _current_tenant.set(tenant_id)
    try:
        yield
    finally:
        _current_tenant.reset(token)


class TenantAwareStorage(StorageInterface):
    """Storage wrapper that adds tenant isolation to any StorageInterface"""

    def __init__(self, inner_storage: StorageInterface):
        self.inner = inner_storage

    def _add_tenant_filter(self, data: Dict[str, Any]) -> Dict[str, Any]:
        tenant_id = get_current_tenant()
        if tenant_id:
            data = data.copy()
            data[TENANT_FIELD] = tenant_id
        return data

    def _check_tenant_access(self, data: Dict[str, Any]) -> bool:
        tenant_id = get_current_tenant()
        if not tenant_id:
            # No tenant set - super-admin mode, can see all data
            return True
        return data.get(TENANT_FIELD) == tenant_id

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        existing = self.inner.load(table, record_id)
        if existing and not self._check_tenant_access(existing):
            raise PermissionError(f"Record {record_id} belongs to another tenant")
        self.inner.save(table, record_id, self._add_tenant_filter(data))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        result = self.inner.load(table, record_id)
        if result and not self._check_tenant_access(result):
            return None
        return result

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        return [record for record in self.inner.load_all(table) if self._check_tenant_access(record)]

    def delete(self, table: str, record_id: str) -> bool:
        record = self.inner.load(table, record_id)
        if not record or not self._check_tenant_access(record):
            return False  # Can't delete what we can't see
        return self.inner.delete(table, record_id)

    def exists(self, table: str, record_id: str) -> bool:
        return self.load(table, record_id) is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self.inner.find(table, self._add_tenant_filter(filters))

    def count(self, table: str) -> int:
        return len(self.load_all(table))

    def clear_table(self, table: str) -> None:
        """Clear table - only for super-admin (no tenant set)"""
        if get_current_tenant():
            raise PermissionError("Cannot clear table with tenant context active")
        self.inner.clear_table(table)

    def close(self) -> None:
        self.inner.close()

    def begin_transaction(self) -> None:
        self.inner.begin_transaction()

    def commit(self) -> None:
        self.inner.commit()

    def rollback(self) -> None:
        self.inner.rollback()
