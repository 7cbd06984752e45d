from __future__ import annotations

import uvicorn

from backend.app.core.config import get_settings
from backend.app.main import create_app


def run() -> None:
    """Run the gateway on the configured port; refuses to start when misconfigured."""

    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
