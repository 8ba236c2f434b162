# gemini_chat/main.py
import argparse
import logging
import sys

from gemini_chat.cli import Shell
from gemini_chat.config import load_settings
from gemini_chat.database import Database
from gemini_chat.exceptions import ChatError
from gemini_chat.services.llm_service import LLMService
from gemini_chat.services.store import ConversationStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gemini-chat", description="Chat with Gemini from the terminal.")
    parser.add_argument("--database-url", default=None, help="SQLAlchemy URL (default: sqlite:///convo.db)")
    parser.add_argument("--no-typing-effect", action="store_true", help="print replies without delays")
    parser.add_argument("--log-level", default=None, help="logging level, e.g. INFO or DEBUG")
    return parser


def setup_logging(level: str, log_file=None):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        filename=log_file,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(
        database_url=args.database_url,
        log_level=args.log_level,
        typing_effect=False if args.no_typing_effect else None,
    )
    setup_logging(settings.log_level, settings.log_file)

    database = Database(settings.database_url)
    try:
        database.init()
        llm = LLMService.from_settings(settings)
    except ChatError as e:
        logger.error("Startup failed: %s", e)
        print("Failed to initialize:", e, file=sys.stderr)
        database.close()
        return 1

    try:
        Shell(ConversationStore(database), llm, typing_effect=settings.typing_effect).run()
    finally:
        database.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
