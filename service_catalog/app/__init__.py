"""
Catalog cache service.

Warms a shared key-value store from the upstream catalog API and serves
cache-aside reads for listings, details and streams.
"""
