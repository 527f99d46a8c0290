MODEL_CAPABILITIES = {
    "default": {
        "context_window": 8192,
        "tokenizer": "approx",
        "max_output_tokens": 4096
    },
    "gpt-4o-mini": {
        "context_window": 128000,
        "tokenizer": "tiktoken",
        "max_output_tokens": 16384
    },
    "gpt-4o": {
        "context_window": 128000,
        "tokenizer": "tiktoken",
        "max_output_tokens": 16384
    },
    "gpt-4.1-mini": {
        "context_window": 1047576,
        "tokenizer": "tiktoken",
        "max_output_tokens": 32768
    },
}

def get_capabilities(model_name):
    return MODEL_CAPABILITIES.get(model_name, MODEL_CAPABILITIES["default"])
