# brandsafety/api/__init__.py
# ============================
# API Layer — Brand Safety
#
# Responsibility:
#   - Expose scan endpoints over the pipeline orchestrator
#   - Expose persisted results
#   - Map typed pipeline errors onto HTTP status codes
