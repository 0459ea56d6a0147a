"""Development server entry point."""

from app import configure_logging, create_app
from app.config import Config

config = Config.from_env()
configure_logging(config.log_level)
app = create_app(config)

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=config.port)
