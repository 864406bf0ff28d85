"""
Prometheus metrics for the imgflow upload pipeline.

Metrics are registered once at import time on the default prometheus-client
registry so any exporter mounted by the host application picks them up.

Key Features:
- Per-field counters for processed, rejected, and rolled-back files
- Per-field histogram of end-to-end field processing time
- Error counter keyed by error type and category, fed by the exception base class
"""

from prometheus_client import Counter, Histogram

files_processed_counter = Counter(
    'imgflow_files_processed_total',
    'Total number of uploaded files by field and outcome',
    ['field', 'status']
)

rollback_counter = Counter(
    'imgflow_rollbacks_total',
    'Total number of field rollbacks after a failed upload',
    ['field']
)

field_processing_time = Histogram(
    'imgflow_field_processing_seconds',
    'Time spent validating, transforming and persisting one upload field',
    ['field']
)

error_counter = Counter(
    'imgflow_errors_total',
    'Total number of imgflow errors by type',
    ['error_type', 'error_category']
)


__all__ = [
    'files_processed_counter',
    'rollback_counter',
    'field_processing_time',
    'error_counter'
]
