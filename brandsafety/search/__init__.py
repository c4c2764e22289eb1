# brandsafety/search/__init__.py
# ===============================
# Remote Search Stage — Brand Safety
#
# Responsibility:
#   - Build identity-anchored boolean queries for a creator
#   - Issue them to the search provider in small concurrent batches
#   - Deduplicate evidence by URL (plus title / near-duplicate snippet)
#
# Public API:
#   - build_query_list()     — consolidated boolean queries
#   - perform_smart_search() — batched provider calls, typed failures
#   - deduplicate_evidence() — URL uniqueness guarantee

from brandsafety.search.query_builder import build_query_list  # noqa: F401
from brandsafety.search.client import (  # noqa: F401
    SearchProviderError,
    SearchQuotaError,
    SearchUnavailableError,
    perform_smart_search,
)
from brandsafety.search.dedup import deduplicate_evidence  # noqa: F401
