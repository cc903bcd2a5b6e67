"""
Tenant audit events

Lifecycle operations emit one event per tenant and outcome. Events are plain
structured records handed to an AuditSink; the default sink writes them to the
`tenantplane.audit` structlog logger.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import uuid
import structlog

from tenantplane.core.timeutils import utcnow

logger = structlog.get_logger(__name__)


class TenantEvent:
    """Base class for tenant audit events"""

    operation = "tenant"
    outcome = "success"

    def __init__(
        self,
        tenant_id: uuid.UUID,
        slug: str,
        details: Optional[Dict[str, Any]] = None,
        event_id: uuid.UUID = None
    ):
        self.event_id = event_id or uuid.uuid4()
        self.occurred_at = utcnow()
        self.tenant_id = tenant_id
        self.slug = slug
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        data = {
            "event_id": str(self.event_id),
            "occurred_at": self.occurred_at.isoformat(),
            "event_type": self.__class__.__name__,
            "tenant_id": str(self.tenant_id),
            "slug": self.slug,
            "operation": self.operation,
            "outcome": self.outcome,
        }
        data.update(_serializable(self.details))
        return data


class TenantProvisioned(TenantEvent):
    """Event fired when provisioning completes for a tenant"""

    operation = "provision"


class TenantDeleted(TenantEvent):
    """Event fired when a tenant and its database are removed"""

    operation = "delete"


class TenantScheduledForDeletion(TenantEvent):
    """Event fired when a retention deadline is assigned"""

    operation = "schedule"


class TenantPurged(TenantEvent):
    """Event fired when an expired tenant is purged"""

    operation = "purge"


class TenantPurgeFailed(TenantEvent):
    """Event fired when purging a tenant raised"""

    operation = "purge"
    outcome = "failure"


def _serializable(details: Dict[str, Any]) -> Dict[str, Any]:
    data = {}
    for key, value in details.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, uuid.UUID):
            value = str(value)
        data[key] = value
    return data


class AuditSink:
    """Default sink: one structured log line per event"""

    def __init__(self, logger_name: str = "tenantplane.audit"):
        self._logger = structlog.get_logger(logger_name)

    def emit(self, event: TenantEvent) -> None:
        data = event.to_dict()
        if event.outcome == "failure":
            self._logger.warning("tenant_audit", **data)
        else:
            self._logger.info("tenant_audit", **data)


class RecordingAuditSink(AuditSink):
    """Keeps emitted events in memory (useful for testing)"""

    def __init__(self):
        super().__init__()
        self.events: List[TenantEvent] = []

    def emit(self, event: TenantEvent) -> None:
        self.events.append(event)
        super().emit(event)

    def of_type(self, event_type: type) -> List[TenantEvent]:
        return [event for event in self.events if isinstance(event, event_type)]
