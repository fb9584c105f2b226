"""
Catalog Service package for the catalog access layer.

Serves a versioned snapshot of the product catalog to storefront pages:
- Manifest generation from the primary datastore, with collection
  classification (featured, trending, new arrivals, best deals)
- Remote manifest fetch with regeneration fallback
- Process-local TTL cache with request coalescing

Structure:
- app.main: FastAPI app, manifest endpoint and lookup routes.
- app.adapters: datastore and remote manifest clients.
- app.images: image variant URL resolution.
- app.manifest: manifest model, classifier and generator.
- app.caching: source strategies and the manifest cache.
- app.domain: read-only catalog accessors.
"""
