"""
Ingestion layer: catalog CSV reading and row normalization.

Submodules:
  catalog_csv — CSV file → raw row dicts, plus upload chunking
  normalizer  — raw rows (any supported header set) → validated CatalogEntry

Normalization is all-or-nothing per chunk: one bad row raises
``IngestionFormatError`` and nothing from that chunk is staged.
"""
