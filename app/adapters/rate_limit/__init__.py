"""Rate limiting adapters.

This package provides a small abstraction layer so the gateway can keep its
per-client counters in memory for a single instance, or in Redis when several
replicas must share one budget, without changing the HTTP layer.
"""
