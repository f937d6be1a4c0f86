"""Business-logic layer (MongoDB-backed uptime events, metrics samples and instance logs).

Uptime services live in:
- uptime_engine.py (pure status normalization, interval accumulation and aggregation)
- uptime_service.py (fetches events from the store and feeds the engine)
"""

# Import side-effects are intentionally avoided here; modules are imported by routers/services as needed.
