"""BaktaForge entry point."""

import uvicorn

from baktaforge.config import settings


def main():
    """Run the BaktaForge API server."""
    uvicorn.run(
        "baktaforge.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug and settings.is_development(),
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
