# =============================================================================
# Services Package - Business Logic
# =============================================================================
# Contains the core business logic, separated from API handlers:
#   - parser.py: text extraction (Docling for PDF, decoding for plain text)
#   - storage.py: S3 object store behind an ObjectStore protocol
#   - llm.py: multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
#   - ingestion.py: upload pipeline and document status transitions
#   - answering.py: the analysis handler (question → persisted answer)
#   - listing.py: read/filter/sort queries over documents and questions
#   - auth.py: the shared-key access policy
# =============================================================================
