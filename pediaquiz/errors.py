"""
Error taxonomy shared by the pipeline, the content store and the API layer.
Each error carries a stable code and the HTTP status the API answers with.
"""


class PipelineError(Exception):
    code = "internal"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(PipelineError):
    code = "unauthenticated"
    http_status = 401


class PermissionDenied(PipelineError):
    code = "permission-denied"
    http_status = 403


class InvalidArgument(PipelineError):
    code = "invalid-argument"
    http_status = 422


class NotFound(PipelineError):
    code = "not-found"
    http_status = 404


class FailedPrecondition(PipelineError):
    code = "failed-precondition"
    http_status = 409


class UnsupportedFormat(PipelineError):
    code = "unsupported-format"
    http_status = 415


class InsufficientContent(PipelineError):
    code = "insufficient-content"
    http_status = 422


class ClassificationFailed(PipelineError):
    code = "classification-failed"
    http_status = 502


class GenerationFailed(PipelineError):
    code = "generation-failed"
    http_status = 502


class TransactionFailed(PipelineError):
    code = "transaction-failed"
    http_status = 500
