import asyncio
import os

from aliexpress_importer import ImporterConfig, ProductImporter


async def main() -> None:
    key = os.environ.get("SCRAPFLY_KEY")
    assert key, "Set SCRAPFLY_KEY environment variable"
    cfg = ImporterConfig(scrapfly_key=key, country="ES", rehost_images=False).finalize()
    async with ProductImporter(cfg) as importer:
        result = await importer.import_product("https://s.click.aliexpress.com/e/_DdXyZ")
    print(result.to_dict(include_stages=True))


if __name__ == "__main__":
    asyncio.run(main())
