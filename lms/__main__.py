"""Run the development server: ``python -m lms``."""

import uvicorn

from lms.config import Settings


def main():
    settings = Settings()
    uvicorn.run(
        "lms.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD and settings.DEBUG,
    )


if __name__ == "__main__":
    main()
