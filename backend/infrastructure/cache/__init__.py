from infrastructure.cache.catalog_cache import CatalogCache

__all__ = ["CatalogCache"]
