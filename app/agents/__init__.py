# =============================================================================
# Agents Package - Two-Phase Answering Pipeline
# =============================================================================
#   - selector.py: Phase 1, picks up to 8 tabs from the catalog (with a
#     deterministic fallback when the model picks none)
#   - reader.py: the read_source tool, bound to one run's selected tabs
#   - orchestrator.py: LangGraph graph, select → generate ⇄ tools, with a
#     step budget and a run deadline
# =============================================================================
