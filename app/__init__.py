# =============================================================================
# Spreadsheet Financial Q&A
# =============================================================================
# Answers questions about a startup's financial model kept in Google Sheets.
# A cheap classification model picks the relevant tabs from a generated
# catalog, then a tool-calling model reads those tabs and streams a cited
# answer, with LangGraph driving the loop.
#
# Package structure:
#   app/
#   ├── api/          → FastAPI route handlers (chat, catalog)
#   ├── agents/       → Tab selector, read_source tool, LangGraph orchestrator
#   ├── models/       → Pydantic V2 request/response schemas, chat turns
#   └── services/     → Sheets fetcher, normalizer, cache, catalog, LLM
#                        providers, catalog summarizer
# =============================================================================
