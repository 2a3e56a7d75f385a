# =============================================================================
# Agents Package - LLM Prompting
# =============================================================================
#   - analyst.py: builds the analysis prompt, calls the LLM provider, and
#     parses the structured reply into an answer plus located citations
# =============================================================================
