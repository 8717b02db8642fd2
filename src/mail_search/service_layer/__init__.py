"""Service layer: ingestion and query pipelines over an open index store."""

from mail_search.service_layer.services import IndexService, SearchService


__all__ = ["IndexService", "SearchService"]
