from __future__ import annotations

IDENTITY_MISSING_MESSAGE = "We couldn't verify your identity. Please log in again and retry."
ARCHIVED_SEND_MESSAGE = "Cannot send messages to archived chats. Please restore the chat first."
ARCHIVED_VIEW_MESSAGE = "This chat has been archived. Please select an active chat or start a new one."
SESSION_GONE_MESSAGE = "This chat is no longer available. It may have been archived or deleted."
SESSION_LOAD_FAILED_MESSAGE = "Error loading session"
SESSION_CREATE_FAILED_MESSAGE = "Failed to create new session"
SEND_FAILED_MESSAGE = "Failed to send message. Please try again."
SEND_IN_PROGRESS_MESSAGE = "The previous message is still being answered. Please wait."
SAVE_FAILED_MESSAGE = "Failed to save messages"
GENERATION_ERROR_REPLY = "Sorry, I encountered an error while processing your request. Please try again."
REACTION_FAILED_MESSAGE = "Failed to update reaction. Please try again."
RATING_FAILED_MESSAGE = "Failed to submit rating. Please try again."
ARCHIVE_FAILED_MESSAGE = "Failed to archive chat"
RESTORE_FAILED_MESSAGE = "Failed to restore chat"
DELETE_FAILED_MESSAGE = "Failed to delete chat"
RENAME_FAILED_MESSAGE = "Failed to update title"
EMPTY_TITLE_MESSAGE = "Title cannot be empty"


class ChatClientError(Exception):
    """Base class for every failure raised by the orchestration core."""


class IdentityMissingError(ChatClientError):
    def __init__(self, message: str = IDENTITY_MISSING_MESSAGE):
        super().__init__(message)


class ArchivedSessionError(ChatClientError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} is archived")


class TransportError(ChatClientError):
    """The request never produced an HTTP response (connection, timeout, ...)."""


class RepositoryError(ChatClientError):
    def __init__(self, status_code: int | None, detail: str):
        self.status_code = status_code
        self.detail = detail
        if status_code is None:
            super().__init__(detail)
        else:
            super().__init__(f"HTTP {status_code}: {detail}")


class SessionNotFoundError(RepositoryError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(404, f"Session not found: {session_id}")
