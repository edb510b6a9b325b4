import uvicorn

from relay.logging_config import setup_logging
from relay.routes import create_app
from relay.settings import settings

setup_logging(settings)

app = create_app()


def run() -> None:
    # log_config=None keeps uvicorn on the handlers installed above.
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
