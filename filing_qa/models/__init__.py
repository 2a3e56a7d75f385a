# =============================================================================
# Models Package - Pydantic Request/Response Schemas
# =============================================================================
# API-facing data shapes, separate from the SQLAlchemy ORM models in
# filing_qa.db.models:
#   - requests.py: incoming bodies and form metadata
#   - responses.py: outgoing documents, questions, errors
# =============================================================================
