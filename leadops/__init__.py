"""LeadOps monitoring core: lead status, sync reconciliation, retries and metrics."""

__version__ = "1.0.0"
