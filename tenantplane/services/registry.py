"""
Central registry lookups

Always reads through an explicit central session, never through the
switcher's default session, so lookups are unaffected by tenant context.
"""

from typing import Dict, List, Optional
import uuid

from sqlmodel import select
import structlog

from tenantplane.core.database import DatabaseManager
from tenantplane.core.exceptions import TenantNotFoundError
from tenantplane.models import Domain, Subscription, Tenant, TenantStatus

logger = structlog.get_logger(__name__)


def _as_uuid(identifier: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(identifier))
    except ValueError:
        return None


class TenantRegistry:
    def __init__(self, database: DatabaseManager):
        self.database = database

    def find(self, identifier) -> Optional[Tenant]:
        """Tenant by slug or UUID"""
        if isinstance(identifier, Tenant):
            identifier = identifier.id
        with self.database.central_session() as session:
            tenant_id = identifier if isinstance(identifier, uuid.UUID) else _as_uuid(identifier)
            if tenant_id is not None:
                tenant = session.get(Tenant, tenant_id)
                if tenant is not None:
                    return tenant
            return session.exec(select(Tenant).where(Tenant.slug == str(identifier))).first()

    def get(self, identifier) -> Tenant:
        tenant = self.find(identifier)
        if tenant is None:
            raise TenantNotFoundError(str(identifier))
        return tenant

    def list(self, status: Optional[str] = None) -> List[Tenant]:
        """All tenants in creation order, optionally filtered by status"""
        statement = select(Tenant).order_by(Tenant.created_at, Tenant.slug)
        if status:
            statement = statement.where(Tenant.status == status)
        with self.database.central_session() as session:
            return list(session.exec(statement).all())

    def active_tenants(self) -> List[Tenant]:
        return self.list(status=TenantStatus.ACTIVE.value)

    def subscription_for(self, tenant: Tenant) -> Optional[Subscription]:
        with self.database.central_session() as session:
            return session.exec(select(Subscription).where(Subscription.tenant_id == tenant.id)).first()

    def subscriptions_by_tenant(self) -> Dict[uuid.UUID, Subscription]:
        with self.database.central_session() as session:
            return {sub.tenant_id: sub for sub in session.exec(select(Subscription)).all()}

    def domains_for(self, tenant: Tenant) -> List[Domain]:
        with self.database.central_session() as session:
            statement = select(Domain).where(Domain.tenant_id == tenant.id).order_by(Domain.id)
            return list(session.exec(statement).all())
