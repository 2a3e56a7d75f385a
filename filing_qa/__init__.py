# =============================================================================
# SEC Filing Q&A Service
# =============================================================================
# Upload SEC filings, extract their text, and ask questions answered by an
# external LLM. Answers are persisted with citations into the source text.
#
# Package structure:
#   filing_qa/
#   ├── api/          → FastAPI route handlers (documents, questions, upload,
#   │                    analyze) and auth dependencies
#   ├── agents/       → Prompt construction and LLM reply parsing
#   ├── db/           → Database engine, session, and ORM models
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → Business logic (extraction, storage, ingestion,
#                        answering, listing, LLM providers, access policy)
# =============================================================================

__version__ = "0.1.0"
