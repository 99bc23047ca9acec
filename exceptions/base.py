"""
Root of the delivery sync exception tree.
"""


class DeliverySyncException(Exception):
    """
    Business failure carrying a display message and the ids and states involved.

    Service methods raise subclasses; the API router and the sync orchestrator
    catch them by family and turn them into HTTP errors or result entries.
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if not self.details:
            return f"{self.__class__.__name__}({self.message!r})"
        details_str = ', '.join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.__class__.__name__}({self.message!r}, {details_str})"
