"""
reports — Anonymous, TTL-bounded incident reports.

Sub-modules:
    models       — Category enum, Report, StoreStats
    store        — thread-safe in-memory index with expiry
    maintenance  — hourly expiry sweep
    sanitizer    — PII scrubbing of report text
    service      — submission / query / subscription entry point
"""
