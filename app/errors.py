# =============================================================================
# Error Taxonomy - Typed Failures for the Q&A Pipeline
# =============================================================================
#
# Every failure the pipeline can surface derives from SheetQAError and
# carries a stable `code` so the HTTP layer (and any other caller) can map
# it without string matching.
#
# Two families:
#   - Run-fatal: ConfigurationError, EmptyQuestionError, OracleError,
#     StepBudgetExceeded, DeadlineExceeded. These end the run and reach
#     the caller as structured errors.
#   - Tool-local: TransportError. Caught per fetch and turned into an
#     "error" FetchResult the answering model can read and disclose.
#
# An unapproved source is NOT an exception - it is a "rejected"
# FetchResult (see app/agents/reader.py).
# =============================================================================

from __future__ import annotations


class SheetQAError(Exception):
    """Base class for all pipeline errors."""

    code = "internal_error"


class ConfigurationError(SheetQAError, ValueError):
    """
    A required setting (env var, catalog file) is missing or invalid.

    Subclasses ValueError so existing `except ValueError` handlers at the
    API boundary keep treating it as a configuration problem.
    """

    code = "configuration_error"


class CatalogError(ConfigurationError):
    """The source catalog JSON is absent or malformed. Fatal at startup."""

    code = "catalog_error"


class EmptyQuestionError(SheetQAError):
    """The question is empty after trimming whitespace."""

    code = "empty_question"


class OracleError(SheetQAError):
    """The classification or generation model call failed."""

    code = "oracle_error"


class TransportError(SheetQAError):
    """The spreadsheet API call failed (network, auth, quota, bad range)."""

    code = "transport_error"


class StepBudgetExceeded(SheetQAError):
    """The answering model was still calling tools when the round budget ran out."""

    code = "step_budget_exceeded"

    def __init__(self, max_steps: int) -> None:
        super().__init__(
            f"No final answer after {max_steps} generation rounds"
        )
        self.max_steps = max_steps


class DeadlineExceeded(SheetQAError):
    """The caller-supplied overall deadline expired mid-run."""

    code = "deadline_exceeded"
