"""Run the API server: ``python -m bddrunner``."""

import uvicorn

from bddrunner.config import settings


def main() -> None:
    uvicorn.run(
        "bddrunner.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
