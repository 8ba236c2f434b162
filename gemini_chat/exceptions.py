# gemini_chat/exceptions.py


class ChatError(Exception):
    """Base class for every error the chat client reports."""


class ConfigurationError(ChatError):
    pass


class MissingCredentialError(ConfigurationError):
    pass


class TransportError(ChatError):
    """The remote model call failed or the stream broke mid-way."""


class StreamInterruptedError(TransportError):
    """The stream was cancelled before it was fully drained."""


class EmptyResponseError(ChatError):
    """The model answered with no candidates."""


class EmptyHistoryError(ChatError):
    pass


class ParseError(ChatError):
    pass


class StorageError(ChatError):
    pass
