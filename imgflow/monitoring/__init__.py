"""
Monitoring package: structlog configuration and Prometheus metrics for imgflow.
"""

from imgflow.monitoring.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)
from imgflow.monitoring.metrics import (
    error_counter,
    field_processing_time,
    files_processed_counter,
    rollback_counter,
)

__all__ = [
    'configure_logging',
    'get_correlation_id',
    'set_correlation_id',
    'error_counter',
    'field_processing_time',
    'files_processed_counter',
    'rollback_counter'
]
