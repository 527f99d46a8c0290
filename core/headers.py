import json


def apply_standard_headers(response, usage=None, reduction=None):
    response.headers["cache-control"] = "no-store"

    if usage:
        response.headers["x-chatwrap-usage"] = json.dumps(usage.to_dict())

    if reduction is not None:
        response.headers["x-chatwrap-context-tokens"] = str(reduction.total_tokens)
        if reduction.warning is not None:
            response.headers["x-chatwrap-warning"] = "budget-exceeded-by-latest-message"
