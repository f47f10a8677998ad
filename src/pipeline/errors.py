# ========================
# src/pipeline/errors.py
# ========================

"""
Import Error Types

Only input and stream failures escape the pipeline. Row and batch failures are
turned into rejection records where they happen.
"""


class PipelineError(Exception):
    """Base class for errors that end an import run."""
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ImportInputError(PipelineError):
    """The request cannot start an import (no file, unknown list)."""
    status_code = 400


class StreamReadError(PipelineError):
    """The input stream broke or is not valid delimited text."""
    status_code = 500
