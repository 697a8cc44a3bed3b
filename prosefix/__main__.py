"""Run the Prosefix server: ``python -m prosefix``."""

import uvicorn

from .core.config import settings


def main() -> None:
    uvicorn.run(
        "prosefix.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,
    )


if __name__ == "__main__":
    main()
