# brandsafety/entity/__init__.py
# ===============================
# Entity Disambiguation Layer — Brand Safety
#
# Responsibility:
#   - Reject evidence about same-name / look-alike entities
#     (e.g. "Alias" when scanning "Ali-A")
#   - Local heuristics first (no network), semantic check second
#
# Public API:
#   - is_likely_about_creator() — pure local heuristic check
#   - evaluate_heuristics()     — tagged local result
#   - disambiguate_evidence()   — full two-pass filter over a list

from brandsafety.entity.heuristics import (  # noqa: F401
    SnippetContext,
    evaluate_heuristics,
    is_likely_about_creator,
    levenshtein,
)
from brandsafety.entity.disambiguator import (  # noqa: F401
    disambiguate_evidence,
    disambiguate_item,
)
