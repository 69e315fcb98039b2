"""
Serve the gridcrud application with uvicorn.

    python -m gridcrud
"""

import uvicorn

from .config import Config


def main() -> None:
    uvicorn.run(
        "gridcrud.main:app",
        host=Config.HOST,
        port=Config.PORT,
        reload=Config.RELOAD,
    )


if __name__ == "__main__":
    main()
