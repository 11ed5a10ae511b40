"""
Interactive terminal chat over the streaming pipeline.
"""

import asyncio
import logging
import sys

from . import __version__
from .config import AssistantConfig
from .core.orchestrator import ChatOrchestrator
from .logging_config import configure_logging
from .models.events import DoneEvent, ErrorEvent, ReplaceEvent, TokenEvent

logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit"}


async def chat_loop(orchestrator: ChatOrchestrator, user_name: str = "") -> None:
    """Read messages from stdin and print streamed replies until EOF or exit."""
    session = orchestrator.session_store.create_session(title="Terminal chat")
    print(f"HR Assistant {__version__} - session {session.session_id}. Type 'exit' to quit.")

    while True:
        try:
            text = await asyncio.to_thread(input, "\n> ")
        except EOFError:
            break
        if text.strip().lower() in EXIT_COMMANDS:
            break
        if not text.strip():
            continue

        async for event in orchestrator.stream_message(
            session.session_id, text, user_name=user_name or None
        ):
            if isinstance(event, TokenEvent):
                print(event.token, end="", flush=True)
            elif isinstance(event, ReplaceEvent):
                print(f"\n\n{event.content}", end="", flush=True)
            elif isinstance(event, ErrorEvent):
                print(f"\n[error] {event.error}", flush=True)
            elif isinstance(event, DoneEvent):
                print(flush=True)

    await orchestrator.runner.drain(timeout=10.0)


async def run(user_name: str = "") -> None:
    config = AssistantConfig.from_env()
    orchestrator = ChatOrchestrator.from_config(config)
    if not orchestrator.model_manager.is_available():
        logger.error("No AI provider is configured. Set an API key in your .env file.")
        sys.exit(1)
    if orchestrator.query_loop is None:
        logger.info("DATABASE_URL not set, query tool disabled")

    try:
        await chat_loop(orchestrator, user_name)
    finally:
        await orchestrator.model_manager.aclose()
        executor = orchestrator.query_loop.executor if orchestrator.query_loop else None
        if executor is not None and hasattr(executor, "dispose"):
            await executor.dispose()


def main():
    """Main entry point."""
    configure_logging()
    user_name = sys.argv[1] if len(sys.argv) > 1 else ""
    logger.info(f"Starting HR assistant {__version__}")

    try:
        asyncio.run(run(user_name))
    except KeyboardInterrupt:
        logger.info("Chat stopped by user")
    except Exception as e:
        logger.error(f"Chat error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
