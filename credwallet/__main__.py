"""Run the credwallet server: python3 -m credwallet"""

import uvicorn

from credwallet.config import settings


def main() -> None:
    uvicorn.run("credwallet.api.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
