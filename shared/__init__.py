"""
Shared utilities for the worker cache layer.

Common building blocks used by the cache service package:

- config: Settings via pydantic-settings
- logging: Structured logging with trace correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorator for calls to the companion API

Do not import from service_* packages into shared/.
"""
