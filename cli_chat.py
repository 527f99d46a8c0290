import argparse
import asyncio
import logging

import httpx

from core import settings
from core.errors import ChatwrapError
from context_manager import ContextManager
from conversation.models import Conversation

SYSTEM_PROMPT = "You are a helpful assistant chatting in the terminal."


class ChatClientError(ChatwrapError):
    pass


class TerminalChat:
    """Keeps the message list in memory so the model has context."""

    def __init__(self, base_url, temperature=settings.DEFAULT_TEMPERATURE, max_tokens=settings.DEFAULT_MAX_TOKENS,
                 system_prompt=SYSTEM_PROMPT, http_client=None, manager=None):
        self.api_url = f"{base_url.rstrip('/')}/chat"
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.http_client = http_client
        self.manager = manager or ContextManager()
        self.conversation = Conversation(conversation_id="terminal")
        if system_prompt:
            self.conversation = self.manager.append(
                self.conversation, {"role": "system", "content": system_prompt}
            )

    async def send(self, user_input: str) -> str:
        pending = self.manager.append(self.conversation, {"role": "user", "content": user_input})

        body = {
            "messages": pending.to_wire(),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens
        }

        try:
            res = await self.http_client.post(self.api_url, json=body)
        except httpx.HTTPError as e:
            raise ChatClientError(f"Could not reach {self.api_url}: {e}") from e

        if res.status_code >= 400:
            raise ChatClientError(f"HTTP {res.status_code}: {res.text}")

        try:
            data = res.json()
        except ValueError as e:
            raise ChatClientError(f"Invalid response from {self.api_url}: {res.text[:200]}") from e
        if not isinstance(data, dict):
            raise ChatClientError(f"Invalid response from {self.api_url}: {res.text[:200]}")

        reply = data.get("reply") or "(no reply)"

        self.conversation = self.manager.append(pending, {"role": "assistant", "content": reply})
        return reply


async def chat_loop(chat: TerminalChat, read_line=input):
    print("=== Console Chat (type 'exit' to quit) ===\n")

    while True:
        try:
            user_input = await asyncio.to_thread(read_line, "You: ")
        except EOFError:
            break

        if not user_input.strip():
            continue
        if user_input.lower() == "exit":
            break

        try:
            print("Assistant: ", end="", flush=True)
            reply = await chat.send(user_input)
            print(reply)
            print("")
        except ChatwrapError as e:
            print(f"\nError: {e}")

    print("Goodbye!")


async def main():
    parser = argparse.ArgumentParser(description="Terminal client for the chat wrapper server")
    parser.add_argument("--url", default=f"http://localhost:{settings.PORT}")
    parser.add_argument("--temperature", type=float, default=settings.DEFAULT_TEMPERATURE)
    parser.add_argument("--max-tokens", type=int, default=settings.DEFAULT_MAX_TOKENS)
    parser.add_argument("--system", default=SYSTEM_PROMPT)
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING)

    async with httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT) as client:
        chat = TerminalChat(
            args.url,
            temperature=args.temperature,
            max_tokens=args.max_tokens,
            system_prompt=args.system,
            http_client=client
        )
        await chat_loop(chat)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
