"""Run the catalog server: `python -m catalog`."""

import uvicorn

from catalog.config import Settings


def main() -> None:
    settings = Settings()
    uvicorn.run(
        "catalog.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
