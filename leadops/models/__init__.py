"""SQLAlchemy model package for the monitoring schema."""

from leadops.models.api_usage import ApiUsage
from leadops.models.base import Base
from leadops.models.lead import Lead
from leadops.models.lead_processing_status import LeadProcessingStatus
from leadops.models.retry_attempt import RetryAttempt
from leadops.models.workflow_error import WorkflowError
from leadops.models.workflow_execution import WorkflowExecution

__all__ = [
    "ApiUsage",
    "Base",
    "Lead",
    "LeadProcessingStatus",
    "RetryAttempt",
    "WorkflowError",
    "WorkflowExecution",
]
