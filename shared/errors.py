"""
Error taxonomy shared by the relay runtime.

- ConfigError is fatal at startup
- PipelineError (and subclasses) aborts a single message pipeline
- MissingNameError is the only user-facing failure
"""

from __future__ import annotations


# ======================================================================
# Startup
# ======================================================================

class ConfigError(RuntimeError):
    """Raised when a required environment value is missing."""


# ======================================================================
# Pipeline
# ======================================================================

class PipelineError(RuntimeError):
    """
    Raised for any failure inside a message pipeline.

    Handled by MessagePipeline: logged, pipeline aborted,
    nothing is sent to the user.
    """


class MissingSnippetError(PipelineError):
    """Raised when a required prompt snippet is not loaded."""

    def __init__(self, prompt_id: str):
        super().__init__(f"No {prompt_id} prompt")
        self.prompt_id = prompt_id


class CompletionError(PipelineError):
    """Raised when the completion service call or its decoding fails."""


class DeliveryError(PipelineError):
    """Raised when a chat platform send / delete call fails."""


class HistoryStoreError(PipelineError):
    """Raised when the conversation store cannot be read or written."""


# ======================================================================
# User input
# ======================================================================

class MissingNameError(ValueError):
    """
    Raised when !uwu is used without a quoted name.

    This is NOT a pipeline failure: the user gets a short-lived warning.
    """
