"""Process entrypoint for the relay.

Run locally:
    uvicorn upirelay.services.relay.main:app --port 3000
or:
    python -m upirelay.services.relay.main
"""

import uvicorn

from upirelay.common.config import load_settings
from upirelay.services.relay.app import create_app

settings = load_settings()
app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
