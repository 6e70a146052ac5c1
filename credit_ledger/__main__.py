"""Run the ledger API with uvicorn: ``python -m credit_ledger``."""

import uvicorn

from credit_ledger.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "credit_ledger.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.server.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
