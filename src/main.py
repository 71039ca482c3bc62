"""CodeCache chat backend entry point."""

import asyncio
import contextlib
import logging
import signal

from src.chat.context import ContextInjector
from src.chat.orchestrator import ConversationOrchestrator
from src.config import settings
from src.db import Database
from src.llm.client import get_completion_model
from src.store.conversations import ConversationStore
from src.store.snippets import SnippetStore
from src.web.server import ChatServer

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def build_orchestrator(db: Database | None = None) -> ConversationOrchestrator:
    """Wire the stores and the configured completion model together."""
    db = db or Database.get()
    return ConversationOrchestrator(
        store=ConversationStore(db),
        injector=ContextInjector(SnippetStore(db)),
        model=get_completion_model(),
    )


async def serve() -> None:
    """Run the HTTP server until SIGINT/SIGTERM."""
    orchestrator = build_orchestrator()
    server = ChatServer(orchestrator)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    await server.start()
    try:
        await stop.wait()
    finally:
        await server.stop()
        await orchestrator.model.close()
        await Database.get().close()


def main() -> None:
    """Start the chat backend."""
    logger.info("Starting CodeCache chat on port %d...", settings.http_port)
    asyncio.run(serve())


if __name__ == "__main__":
    main()
