# =============================================================================
# API Package - FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for a specific feature:
#   - documents.py: Document listing, registration, lookup and deletion
#   - upload.py: Multipart file upload with synchronous text extraction
#   - questions.py: Question listing, lookup and asking
#   - analyze.py: Direct entry point to the answering service
#   - deps.py: Shared dependencies (API key policy, object store, LLM)
# =============================================================================
