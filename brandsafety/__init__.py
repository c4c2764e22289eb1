# brandsafety/__init__.py
# ========================
# Brand Safety — creator reputational-risk evidence pipeline
#
# Stages: Search → Dedup → Entity Disambiguation → Classification → Scoring
#
# Public API:
#   - run_pipeline()  — one full scan, returns a RiskOutcome
#   - scan_creator()  — reuse a fresh cached result, else scan

from brandsafety.models import (  # noqa: F401
    Classification,
    Creator,
    CreatorEntityProfile,
    EvidenceItem,
    RiskLevel,
    RiskOutcome,
    build_entity_profile,
)
from brandsafety.pipeline import (  # noqa: F401
    run_pipeline,
    run_pipeline_with_deadline,
    scan_creator,
)
