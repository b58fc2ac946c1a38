"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in phaseboard/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from phaseboard.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

WRITE_LIMIT = "120/minute"
READ_LIMIT = "300/minute"

# Blueprints whose routes mutate the store.
_WRITE_BLUEPRINTS = ("project", "process", "task", "note")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - CRUD blueprints:  120/minute
        - Auth endpoints:   300/minute
        - Change feed:      exempt (one long-lived request per client)
        - Health check:     exempt

    Rate limiting is disabled in testing mode or when RATELIMIT_ENABLED is false.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    for bp_name in _WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    bp = app.blueprints.get("auth_bp")
    if bp:
        limiter.limit(READ_LIMIT)(bp)

    for bp_name in ("changes", "health_bp"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — crud: %s, auth: %s", WRITE_LIMIT, READ_LIMIT,
    )
