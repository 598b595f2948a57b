"""
Worker cache package.

Keeps worker and branch data from the attendance API fresh on the client
side with a stale-while-revalidate strategy.

Structure:
- app.caching: TTL cache, shared cache store and the SWR resource.
- app.adapters: HTTP client for the attendance API.
- app.domain: Records returned by the API.
- app.directory: Pre-keyed resources wiring the client to the cache.
"""
