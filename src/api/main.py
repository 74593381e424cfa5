"""Uvicorn entrypoint for the rent pricing API."""

from __future__ import annotations

import uvicorn

from src.api.api_config import get_api_config
from src.api.app import create_app

app = create_app()


def main() -> None:
    config = get_api_config()
    uvicorn.run("src.api.main:app", host=config.host, port=config.port)


if __name__ == "__main__":
    main()
