"""
Domain errors raised by the services and mapped to HTTP responses in main.py.

Store failures (SQLAlchemyError, redis errors) are not wrapped: they
reach the caller unchanged.
"""


class ChatlyError(Exception):
    """Base class for errors the API turns into a client response"""


class NotFoundError(ChatlyError, LookupError):
    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidOperationError(ChatlyError, ValueError):
    pass
