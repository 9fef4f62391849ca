"""
Prometheus metrics shared by the API and the reconciliation engine
"""

from prometheus_client import Counter, Histogram, Gauge

REQUEST_COUNT = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
REQUEST_DURATION = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])
ACTIVE_CONNECTIONS = Gauge('http_active_connections', 'Number of active HTTP connections')
WEBHOOK_COUNT = Counter('webhook_requests_total', 'Total webhook requests', ['status'])
PURCHASE_COUNT = Counter('quota_purchases_total', 'Purchase attempts', ['status'])
RECONCILIATION_COUNT = Counter('payment_reconciliations_total', 'Payment verifications', ['outcome'])
MERGE_COUNT = Counter('participation_merges_total', 'Quota merges into participations', ['source'])
