"""
Domain Exceptions

Errors raised by the store and the core services. The session gateway turns
them into `status-error` frames for the requesting connection only.
"""


class HuddleError(Exception):
    """Base class for all domain errors."""

    user_message = "Something went wrong."

    def __init__(self, message: str = None):
        super().__init__(message or self.user_message)
        self.message = message or self.user_message


class NotFoundError(HuddleError):
    """Username or user lookup failed."""

    user_message = "User not found."


class SelfReferenceError(HuddleError):
    """A friend request targeted the sender."""

    user_message = "You cannot add yourself."


class AlreadyFriendsError(HuddleError):
    """A friend request targeted an existing friend."""

    user_message = "You are already friends."


class NoSuchConversationError(HuddleError):
    """Conversation does not exist (never created or already dissolved)."""

    user_message = "Conversation not found."


class StoreError(HuddleError):
    """
    A persistent write failed.

    Fatal to the triggering operation. Nothing is retried and no in-memory
    state is changed for the failed write.
    """

    user_message = "Something went wrong. Please try again."


class InvalidInputError(HuddleError):
    """Registration or profile input rejected (HTTP 400)."""

    user_message = "Invalid input."


class InvalidCredentialsError(HuddleError):
    """Login failed (HTTP 401)."""

    user_message = "Invalid credentials."
