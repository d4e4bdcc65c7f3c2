"""Catalog components: categories, products, history, revert, bulk import, stats."""

from catalog_service.catalog.bulk import BulkPipeline, BulkPreview, CommitSummary, NukeSummary, PreviewRow
from catalog_service.catalog.cache import CategoryNode, CategoryTreeCache
from catalog_service.catalog.categories import CategoryService, DeleteImpact
from catalog_service.catalog.csv_format import ParsedCSV, parse_bulk_csv, write_products_csv
from catalog_service.catalog.history import BulkOperationRecord, HistoryEntry, HistoryRecorder
from catalog_service.catalog.products import ProductPage, ProductService, validate_product_fields
from catalog_service.catalog.revert import RevertService, RevertSummary
from catalog_service.catalog.service import CatalogService
from catalog_service.catalog.stats import CatalogStats, StatsService

__all__ = [
    # Facade
    "CatalogService",
    # Components
    "BulkPipeline",
    "CategoryService",
    "CategoryTreeCache",
    "HistoryRecorder",
    "ProductService",
    "RevertService",
    "StatsService",
    # Read models
    "BulkOperationRecord",
    "BulkPreview",
    "CatalogStats",
    "CategoryNode",
    "CommitSummary",
    "DeleteImpact",
    "HistoryEntry",
    "NukeSummary",
    "ParsedCSV",
    "PreviewRow",
    "ProductPage",
    "RevertSummary",
    # CSV
    "parse_bulk_csv",
    "validate_product_fields",
    "write_products_csv",
]
