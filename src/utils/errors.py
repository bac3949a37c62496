"""
Custom error classes for the refinement engine
"""


class RefinementError(Exception):
    """Base exception for refinement errors"""
    pass


class ParseFailure(RefinementError):
    """SQL text could not be parsed into a syntax tree"""

    def __init__(self, sql: str, reason: str):
        self.sql = sql
        self.reason = reason
        super().__init__(f"Could not parse SQL: {reason}")


class CollaboratorUnavailable(RefinementError):
    """Execution or similarity backend failed to respond"""

    def __init__(self, collaborator: str, reason: str):
        self.collaborator = collaborator
        self.reason = reason
        super().__init__(f"{collaborator} unavailable: {reason}")


class CatalogError(RefinementError):
    """Catalog could not be loaded or is inconsistent"""
    pass
