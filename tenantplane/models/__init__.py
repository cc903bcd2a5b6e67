from tenantplane.models.tenant import Tenant, TenantStatus, Domain, tenant_database_name
from tenantplane.models.subscription import Subscription, SubscriptionStatus
from tenantplane.models.metrics import TenantMetricsDaily
from tenantplane.models.user import User, Role, Permission, RolePermission, UserRole, Technician
from tenantplane.models.migration import MigrationRecord

# Tables owned by the central registry; everything else lives in tenant databases
CENTRAL_TABLES = [
    Tenant.__table__,
    Domain.__table__,
    Subscription.__table__,
    TenantMetricsDaily.__table__,
]
