"""
Business Verifier — exception hierarchy.

Item-level lookup failures never surface as exceptions; they become
``error`` records. Everything here is either rejected before a job exists
(validation, not-found) or fails the job with a readable message.
"""


class VerifierError(Exception):
    """Base class for all Business Verifier errors."""


class JobValidationError(VerifierError):
    """Malformed workflow input; raised before any job is created."""


class BatchNotFoundError(VerifierError):
    def __init__(self, batch_id: str):
        super().__init__(f"Upload batch {batch_id} not found")
        self.batch_id = batch_id


class JobNotFoundError(VerifierError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class InvalidTransition(VerifierError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Illegal job transition {current} → {target}")
        self.current = current
        self.target = target


class WorkflowError(VerifierError):
    """A workflow precondition is unmet; the job ends ``failed``."""
