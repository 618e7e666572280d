"""Prometheus metrics exporters."""
from prometheus_client import Counter, CollectorRegistry

# Create registry
registry = CollectorRegistry()

# ========== POSITION METRICS ==========
positions_opened = Counter(
    'journal_positions_opened_total',
    'Total number of positions opened',
    ['direction'],
    registry=registry
)

positions_closed = Counter(
    'journal_positions_closed_total',
    'Total number of positions closed',
    ['outcome'],
    registry=registry
)

positions_deleted = Counter(
    'journal_positions_deleted_total',
    'Total number of positions deleted',
    registry=registry
)

# ========== OPERATION METRICS ==========
operations_recorded = Counter(
    'journal_operations_recorded_total',
    'Total number of operations recorded',
    ['kind'],
    registry=registry
)

operations_deleted = Counter(
    'journal_operations_deleted_total',
    'Total number of operations deleted',
    ['kind'],
    registry=registry
)

# ========== HELPER FUNCTIONS ==========
def record_position_opened(direction: str):
    """Record a new position opening."""
    positions_opened.labels(direction=direction).inc()

def record_position_closed(outcome: str):
    """Record a position closing (win, loss or flat)."""
    positions_closed.labels(outcome=outcome).inc()

def record_position_deleted():
    """Record an explicit position deletion."""
    positions_deleted.inc()

def record_operation(kind: str):
    """Record a new operation."""
    operations_recorded.labels(kind=kind).inc()

def record_operation_deleted(kind: str):
    """Record an operation deletion."""
    operations_deleted.labels(kind=kind).inc()
