from fastapi.responses import JSONResponse


class ChatwrapError(Exception):
    """Base class for errors raised by the chat wrapper."""


class InvalidMessage(ChatwrapError, ValueError):
    pass


class SummarizationUnavailable(ChatwrapError):
    pass


class ProviderUnavailable(ChatwrapError):

    def __init__(self, message, status_code=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class BudgetExceededByLatestMessage(UserWarning):
    """The newest message, with the pinned one if any, does not fit the budget.

    Returned alongside a usable reduction, never raised.
    """

    def __init__(self, latest_tokens, max_tokens, total_tokens=None):
        total_tokens = latest_tokens if total_tokens is None else total_tokens
        if total_tokens > latest_tokens:
            text = (f"latest message needs {latest_tokens} tokens, "
                    f"{total_tokens} with the pinned message, budget is {max_tokens}")
        else:
            text = f"latest message needs {latest_tokens} tokens, budget is {max_tokens}"
        super().__init__(text)
        self.latest_tokens = latest_tokens
        self.total_tokens = total_tokens
        self.max_tokens = max_tokens


def error_response(message, status=400, details=None):
    content = {"error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status, content=content)
