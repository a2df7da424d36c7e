"""
Run the Simple Bank API server with uvicorn.
"""

import uvicorn

from .api import create_app
from .config import load_config


def run_server(host: str = None, port: int = None) -> None:
    """Start the API server using configuration from the environment"""
    config = load_config()
    app = create_app(config)
    uvicorn.run(app, host=host or config.api_host, port=port or config.api_port)


if __name__ == "__main__":
    run_server()
