"""agency_ops.integrations - External service gateway modules.

All outbound HTTP calls go through a gateway in this package, never via
bare `requests` calls in services or blueprints.  Every call is
time-bounded and returns or raises something the caller can log.

Current gateways:
  document_gateway.HttpDocumentGenerator - remote document rendering service
"""
