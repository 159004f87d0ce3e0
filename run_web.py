#!/usr/bin/env python3
"""
Run the TrueWage report service.
"""

import os
import sys


def main() -> None:
    # Make src importable
    repo_root = os.path.dirname(os.path.abspath(__file__))
    sys.path.insert(0, os.path.join(repo_root, "src"))

    from dotenv import load_dotenv
    load_dotenv(os.path.join(repo_root, ".env"))

    import uvicorn

    from config.settings import get_settings
    from services.logging_config import configure_logging

    settings = get_settings()
    configure_logging(
        level=settings.log_level,
        json_output=settings.json_logs or settings.is_production,
    )

    uvicorn.run(
        "web.app:create_app",
        factory=True,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    main()
