from __future__ import annotations

import uvicorn

from .config import load_settings


def main() -> None:
    """Serve the chat API on 0.0.0.0:$PORT."""
    settings = load_settings()
    uvicorn.run(
        "oclaria_assistant.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
