from __future__ import annotations

import argparse
import asyncio
import sys

from stocksage.core.logging import configure_logging
from stocksage.core.settings import get_settings
from stocksage.services.chat_stream import StreamTransportError
from stocksage.services.conversation import ConversationStore
from stocksage.services.insight_client import InsightClient, InsightClientError

EXIT_COMMANDS = {"exit", "quit"}


async def ask_once(client: InsightClient, conversation: ConversationStore, question: str, ticker: str | None) -> bool:
    """Print one streamed answer; return ``False`` when the exchange failed."""

    try:
        async for fragment in client.stream_reply(conversation, question, ticker=ticker):
            print(fragment, end="", flush=True)
    except InsightClientError as exc:
        print(exc.user_message, file=sys.stderr)
        return False
    except StreamTransportError:
        print("\nFailed to get AI response", file=sys.stderr)
        return False
    print()
    return True


async def run(client: InsightClient, *, ticker: str | None, message: str | None) -> int:
    conversation = ConversationStore()
    try:
        if message is not None:
            return 0 if await ask_once(client, conversation, message, ticker) else 1

        while True:
            try:
                question = await asyncio.to_thread(input, "> ")
            except EOFError:
                return 0
            question = question.strip()
            if not question:
                continue
            if question.lower() in EXIT_COMMANDS:
                return 0
            await ask_once(client, conversation, question, ticker)
    finally:
        await client.aclose()


def main(argv: list[str] | None = None) -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Chat with the StockSage educational insight assistant")
    parser.add_argument("--endpoint", default=settings.insight_endpoint_url, help="Insight endpoint URL")
    parser.add_argument("--ticker", default=None, help="Optional ticker symbol to focus on")
    parser.add_argument("--message", default=None, help="Ask a single question and exit")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level or "WARNING")
    ticker = args.ticker.strip().upper() if args.ticker else None
    client = InsightClient(
        args.endpoint,
        api_key=settings.insight_api_key,
        timeout_seconds=settings.insight_timeout_seconds,
        max_deferred_chars=settings.stream_max_deferred_chars,
    )
    raise SystemExit(asyncio.run(run(client, ticker=ticker, message=args.message)))


if __name__ == "__main__":
    main()
