"""
Analytics query proxy service package.

The proxy sits between browsers and the analytics query API, enforcing:
- Origin allow-listing for cross-domain queries
- Scoped keys: query parameters and filter restrictions baked into the key
- Response caching: recent successful answers are served without a round trip

Structure:
- app.main: FastAPI app and pipeline wiring.
- app.domain: Pipeline driver and its stages (origin gate, authorizer).
- app.scoped_keys: Scoped key encryption and filter restriction.
- app.caching: Cache key derivation and the MongoDB response cache.
- app.adapters: HTTP client for the upstream analytics API.
"""
