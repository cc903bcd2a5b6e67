"""
Error taxonomy for tenant lifecycle operations
"""


class TenantPlaneError(Exception):
    """Base class for control plane errors"""


class ConfigurationError(TenantPlaneError):
    """A tenant cannot be routed (missing or unsafe database name).

    Raised before any routing state or database is touched.
    """


class TransientOperationError(TenantPlaneError):
    """Connectivity or permission failure during a single tenant's step"""

    def __init__(self, message: str, tenant_id=None, slug: str = None):
        super().__init__(message)
        self.tenant_id = tenant_id
        self.slug = slug


class AlreadySatisfied(TenantPlaneError):
    """An idempotent create found its target already present"""


class SafetyViolation(TenantPlaneError):
    """Attempt to schedule or purge a tenant that is active or on trial"""

    def __init__(self, slug: str, state: str):
        super().__init__(f"Tenant '{slug}' is {state}; refusing destructive lifecycle step")
        self.slug = slug
        self.state = state


class TenantNotFoundError(TenantPlaneError):
    """No tenant matches the given slug or id"""

    def __init__(self, identifier: str):
        super().__init__(f"Tenant not found: {identifier}")
        self.identifier = identifier


class TenantConflictError(TenantPlaneError):
    """A tenant with the requested slug exists and belongs to someone else"""


class InvalidTenantError(TenantPlaneError, ValueError):
    """Signup data that can never be provisioned (reserved or malformed slug)"""
