"""
Shared module for configuration used by the WebSocket bridge.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging with client id correlation

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.logging import get_logger, setup_logging
"""
