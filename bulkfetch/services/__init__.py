from bulkfetch.services.bulk_fetch_service import BulkFetchService, build_bulk_fetch_service

__all__ = ["BulkFetchService", "build_bulk_fetch_service"]
