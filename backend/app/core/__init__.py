"""
Core package — cross-cutting concerns.

Modules:
    config      — environment variables & settings
    logging     — structured JSON logging
    errors      — exception hierarchy & handlers
    middleware  — request logging & rate limiting
    health      — health check aggregation
"""
