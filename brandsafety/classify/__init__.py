# brandsafety/classify/__init__.py
# =================================
# Evidence Classification Layer — Brand Safety
#
# Responsibility:
#   - Label validated evidence with stance / category / severity /
#     sentiment / mitigation / summary via the classification provider
#   - Batch, retry with back-off, and cache by evidence URL
#
# Public API:
#   - classify_evidence_batch()        — batched, partial-failure tolerant
#   - parse_classification_response()  — schema validation at the boundary

from brandsafety.classify.classifier import (  # noqa: F401
    ClassificationError,
    classify_evidence_batch,
    classify_with_backoff,
    parse_classification_response,
)
