"""
Shared utilities for the catalog cache service.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with run/request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry helpers with linear/exponential backoff
- test_helpers: In-memory fakes and payload factories for tests

Any cross-cutting logic should live here to avoid import cycles. Do not
import from service_catalog into shared/.
"""
