import os

import uvicorn

from finanzapp.app import create_app
from finanzapp.logger import get_logging_config

app = create_app()


def run() -> None:
    uvicorn.run(
        "finanzapp.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_config=get_logging_config(),
    )


if __name__ == "__main__":
    run()
