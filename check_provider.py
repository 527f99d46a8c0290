# check_provider.py
import asyncio

from core import settings
from conversation.store import RedisConversationStore
from core.errors import ProviderUnavailable
from model_engine import OpenAICompletionProvider


async def check():
    print("🔧 Chat wrapper connectivity check")

    print(f"API key set: {bool(settings.OPENAI_API_KEY)}")

    # Completion provider
    provider = OpenAICompletionProvider(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
        model=settings.CHAT_MODEL,
        timeout=settings.PROVIDER_TIMEOUT
    )
    try:
        completion = await provider.complete(
            [{"role": "user", "content": "Hello!"}],
            max_tokens=32
        )
        print(f"✅ {completion.model} replied: {completion.reply}")
    except ProviderUnavailable as e:
        print(f"❌ Provider error: {e}")

    # Redis (optional)
    if not settings.REDIS_URL:
        print("ℹ️  REDIS_URL not set, conversations will be kept in memory")
        return

    store = RedisConversationStore(url=settings.REDIS_URL)
    try:
        await store.connect()
        print("✅ Redis connected")
    except Exception as e:
        print(f"❌ Redis error: {e}")
    finally:
        await store.close()


if __name__ == "__main__":
    asyncio.run(check())
