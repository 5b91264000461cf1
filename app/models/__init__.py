# =============================================================================
# Models Package - Schemas and Conversation State
# =============================================================================
# requests.py / responses.py define the public API contract (Pydantic V2).
# conversation.py holds the provider-neutral chat turns the orchestrator
# reads and appends to. The two are kept separate so the wire format can
# change without touching the pipeline.
# =============================================================================
