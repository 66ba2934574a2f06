from __future__ import annotations

import uvicorn

from alertrouter.cli.ux import info
from alertrouter.config import get_settings
from alertrouter.config.loader import load_config
from alertrouter.core.errors import main_with_error_handling


@main_with_error_handling()
def serve_command(config_file: str | None = None, host: str = "0.0.0.0", port: int = 9093) -> int:
    """Run the HTTP API and dispatch loop until interrupted."""
    from alertrouter.api.main import create_app

    settings = get_settings()
    if config_file:
        settings = settings.model_copy(update={"config_file": config_file})

    # A bad config exits with ExitCode.CONFIG_ERROR before uvicorn starts.
    load_config(settings.config_file)
    info(f"Serving on http://{host}:{port} with {settings.config_file}")

    uvicorn.run(create_app(settings), host=host, port=port, log_level=settings.log_level.lower())
    return 0
