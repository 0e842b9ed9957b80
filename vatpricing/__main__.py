"""개발 서버 실행: python -m vatpricing"""

import os

import uvicorn

from . import config


def main() -> None:
    uvicorn.run(
        "vatpricing.api.main:app",
        host=os.getenv("VATPRICING_HOST", "127.0.0.1"),
        port=int(os.getenv("VATPRICING_PORT", "8000")),
        log_level=config.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
