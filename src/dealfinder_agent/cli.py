"""
Command-line interface for DealFinder-Agent.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import structlog

from .chat.compaction import CompactionConfig, compact_conversation
from .chat.parts import Message
from .config import get_settings
from .models import init_database
from .persona.engine import PersonaEngine
from .persona.merger import confidence_label
from .persona.signals import extract_chat_signals
from .persona.store import PersonaError, SQLPersonaStore

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def main() -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="dealfinder",
        description="DealFinder-Agent - conversation compaction and shopping personas",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init", help="Create the persona database")
    subparsers.add_parser("config", help="Show configuration")

    compact_parser = subparsers.add_parser("compact", help="Compact a JSON message history")
    compact_parser.add_argument("file", help="Path to a JSON array of messages ('-' for stdin)")
    compact_parser.add_argument("--max-tokens", type=int, default=None, help="Token budget")

    signals_parser = subparsers.add_parser("signals", help="Show persona signals found in a message")
    signals_parser.add_argument("text", help="User message text")

    persona_parser = subparsers.add_parser("persona", help="Inspect and update personas")
    persona_subparsers = persona_parser.add_subparsers(dest="persona_command")

    show_parser = persona_subparsers.add_parser("show", help="Print a user's persona block")
    show_parser.add_argument("user_id")

    learn_parser = persona_subparsers.add_parser("learn", help="Learn from a chat message")
    learn_parser.add_argument("user_id")
    learn_parser.add_argument("text")

    reset_parser = persona_subparsers.add_parser("reset", help="Reset a user's persona")
    reset_parser.add_argument("user_id")

    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO), format="%(message)s")

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "init":
        asyncio.run(init_db())
    elif args.command == "config":
        show_config()
    elif args.command == "compact":
        compact_file(args.file, args.max_tokens)
    elif args.command == "signals":
        show_signals(args.text)
    elif args.command == "persona":
        if args.persona_command is None:
            persona_parser.print_help()
            sys.exit(0)
        try:
            asyncio.run(run_persona_command(args))
        except PersonaError as e:
            print(f"❌ {e}")
            sys.exit(1)
    else:
        parser.print_help()


async def init_db() -> None:
    """Create database tables."""
    settings = get_settings()
    _ensure_sqlite_dir(settings.database_url)
    await init_database(settings.database_url)
    print(f"✅ Database ready at {settings.database_url}")


def show_config() -> None:
    """Show current configuration."""
    settings = get_settings()

    print("\n=== DealFinder-Agent Configuration ===\n")
    print(f"  Log Level: {settings.log_level}")
    print(f"  Debug: {settings.debug}")

    print("\nCompaction:")
    print(f"  Enabled: {settings.compaction_enabled}")
    print(f"  Max Tokens: {settings.compaction_max_tokens}")

    print("\nPersona:")
    print(f"  Learning: {settings.persona_learning_enabled}")
    print(f"  Injection: {settings.persona_injection_enabled}")

    print("\nDatabase:")
    print(f"  URL: {settings.database_url}")


def _ensure_sqlite_dir(database_url: str) -> None:
    if database_url.startswith("sqlite") and ":///" in database_url:
        path = database_url.split(":///", 1)[1]
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)


def compact_file(file: str, max_tokens: int | None) -> None:
    """Compact a message history read from a JSON file."""
    settings = get_settings()
    raw = sys.stdin.read() if file == "-" else Path(file).read_text()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        print(f"❌ Invalid JSON: {e}")
        sys.exit(1)
    if not isinstance(data, list):
        print("❌ Expected a JSON array of messages")
        sys.exit(1)

    messages = [Message.from_dict(m) for m in data if isinstance(m, dict)]
    config = CompactionConfig(max_tokens=max_tokens or settings.compaction_max_tokens)
    compacted, result = compact_conversation(messages, config)

    print(json.dumps([m.to_dict() for m in compacted], indent=2, default=str))
    logger.info(
        "History compacted",
        messages_before=result.original_message_count,
        messages_after=result.compacted_message_count,
        tokens_before=round(result.tokens_before),
        tokens_after=round(result.tokens_after),
    )


def show_signals(text: str) -> None:
    """Print the persona signals extracted from a message."""
    signals = extract_chat_signals(text)
    print(json.dumps([s.to_dict() for s in signals], indent=2))


async def run_persona_command(args: argparse.Namespace) -> None:
    """Run a persona subcommand against the configured database."""
    settings = get_settings()
    _ensure_sqlite_dir(settings.database_url)
    session_maker = await init_database(settings.database_url)
    engine = PersonaEngine(SQLPersonaStore(session_maker))

    if args.persona_command == "show":
        block = await engine.render_context(args.user_id)
        print(block or f"No persona found for {args.user_id}")

    elif args.persona_command == "learn":
        signals = extract_chat_signals(args.text)
        if not signals:
            print("No signals found in message")
            return
        record = await engine.apply_signals(args.user_id, signals)
        print(f"✅ Applied {len(signals)} signal(s)")
        print(f"Confidence: {record.confidence_score:.0%} ({confidence_label(record.confidence_score)})")

    elif args.persona_command == "reset":
        await engine.reset_persona(args.user_id)
        print(f"✅ Persona reset for {args.user_id}")


if __name__ == "__main__":
    main()
