"""
Domain errors raised by the services and translated to HTTP responses in main.py.
"""


class UserAlreadyExistsError(Exception):
    """Email or username is already registered"""


class InvalidTokenError(Exception):
    """Bearer token is malformed, tampered with or expired"""


class InvalidSubmissionError(Exception):
    """Review submission is missing code or language"""


class ReviewGenerationError(Exception):
    """The AI call failed or returned something that is not a valid report"""


class ReviewStorageError(Exception):
    """
    The review could not be saved.

    The report has already been generated at this point, so it travels with the
    error and can still be returned to the caller.
    """

    def __init__(self, message, report=None):
        super().__init__(message)
        self.report = report
