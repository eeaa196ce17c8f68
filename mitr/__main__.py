#!/usr/bin/env python3
"""
Main entry point for the Mitr therapeutic chat pipeline.
Allows running the package with: python -m mitr
"""
import asyncio
import sys
from typing import Any, Dict, List

from .config import get_config
from .utils.logging import setup_logging


def parse_args(argv: List[str]) -> Dict[str, Any]:
    """Read the command-line flags; unknown flags are ignored."""
    options: Dict[str, Any] = {
        "fast": "--fast" in argv,
        "serve": "--serve" in argv,
        "host": None,
        "port": None,
        "log_level": None,
    }
    for arg in argv:
        if arg.startswith("--host="):
            options["host"] = arg.split("=", 1)[1]
        elif arg.startswith("--port="):
            try:
                options["port"] = int(arg.split("=", 1)[1])
            except ValueError:
                raise ValueError("Invalid port value. Use --port=8000") from None
        elif arg.startswith("--log-level="):
            options["log_level"] = arg.split("=", 1)[1].upper()
    return options


def main():
    """Command-line interface: interactive chat, or the HTTP API with --serve."""

    try:
        options = parse_args(sys.argv[1:])
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    log_file = setup_logging(config.log_file, options["log_level"] or config.log_level)
    print(f"📝 Detailed logs: {log_file}")

    if options["serve"]:
        import uvicorn
        from .api import create_app

        host = options["host"] or config.api_host
        port = options["port"] or config.api_port
        print(f"🌐 Serving Mitr API on http://{host}:{port}")
        uvicorn.run(create_app(config=config), host=host, port=port, log_config=None)
        return

    from .pipeline.orchestrator import MitrOrchestrator
    from .pipeline.session import ChatSession
    from .pipeline.sentiment import SentimentAnalyzer

    if options["fast"]:
        print("⚡ Fast mode: one model call per message")
    else:
        print("🧠 Comprehensive mode: full multimodal pipeline")
        print("   (Use --fast for quicker replies)")

    session = ChatSession(
        orchestrator=MitrOrchestrator.from_config(config),
        sentiment_analyzer=SentimentAnalyzer(),
        fast=options["fast"],
    )
    asyncio.run(session.run())


if __name__ == "__main__":
    main()
