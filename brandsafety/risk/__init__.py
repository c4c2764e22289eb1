# brandsafety/risk/__init__.py
# =============================
# Risk Scoring Engine — Brand Safety
#
# Responsibility:
#   - Compute per-item risk contributions (severity × category weight,
#     recency decay, sentiment, mitigation, source position)
#   - Aggregate into a bounded composite score, a risk band and a confidence
#   - Apply mandatory-override policy (minors / sexual misconduct,
#     multiple or recent high-severity offences)
#
# Public API:
#   - enrich_evidence_risk()  — attach recency + contribution per item
#   - evaluate_risk_outcome() — deterministic aggregate assessment

from brandsafety.risk.recency import (  # noqa: F401
    detect_recency_months,
    detect_recency_weight,
)
from brandsafety.risk.scorer import (  # noqa: F401
    RiskAssessment,
    calculate_risk_contribution,
    derive_risk_level,
    enrich_evidence_risk,
    evaluate_risk_outcome,
)
