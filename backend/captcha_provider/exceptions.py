"""
Error taxonomy shared by the protocol core and the API layer.

A wrong answer is never an exception: verification failures are returned as
``verified=False``. Exceptions are reserved for malformed input (the caller
broke the protocol) and for collaborator failures (the answer is unknown).
"""


class MalformedInputError(ValueError):
    """Input is missing fields or has the wrong shape; rejected before any check."""


class MalformedProofError(MalformedInputError):
    """A Merkle proof with the wrong layer count or node fan-out."""


class CollaboratorError(RuntimeError):
    """The chain gateway or a remote Provider could not be reached or answered badly."""

    def __init__(self, message: str, *, collaborator: str, status_code: int | None = None):
        super().__init__(message)
        self.collaborator = collaborator
        self.status_code = status_code
