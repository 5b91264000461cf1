# =============================================================================
# Services Package - Business Logic
# =============================================================================
# Contains the core business logic, separated from API handlers:
#   - sheets.py: Google Sheets tab fetcher (service account)
#   - normalizer.py: raw cell grid → compact CSV
#   - cache.py: normalized tab records keyed by tab name
#   - catalog.py: tab name → summary index used by the selector
#   - summarizer.py: offline catalog generation with the LLM
#   - llm.py: Multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
# =============================================================================
