"""aliexpress_importer package

Provides a programmatic API, a CLI and a small JSON HTTP endpoint that import
one AliExpress product (any product, mobile or affiliate short-link URL) into
the storefront's product shape, using Scrapfly to render the page.

Example:
    from aliexpress_importer import ImporterConfig, ProductImporter

    async with ProductImporter(ImporterConfig.from_env()) as importer:
        result = await importer.import_product("https://s.click.aliexpress.com/e/_DdXyZ")
    print(result.to_dict())

See `aliexpress_importer.models` for the output schema.
"""
from .config import ImporterConfig
from .exceptions import ImporterError, ProviderError, StorageError, UnsupportedUrl
from .main import ProductImporter, import_product
from .models import ImportedProduct, ImportResult, ResolvedUrlSet, VariantGroup, VariantOption
from .urls import resolve_url

__all__ = [
  "ImporterConfig",
  "ImporterError",
  "ProviderError",
  "StorageError",
  "UnsupportedUrl",
  "ProductImporter",
  "import_product",
  "ImportedProduct",
  "ImportResult",
  "ResolvedUrlSet",
  "VariantGroup",
  "VariantOption",
  "resolve_url",
]
