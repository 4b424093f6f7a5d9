# main.py - bot control panel entry point
import asyncio
import logging
import uvicorn

from botpanel.config.settings import settings
from botpanel.domain.interfaces import IGateway, Repositories
from botpanel.infrastructure.database.sqlite_repositories import create_sqlite_repositories
from botpanel.infrastructure.gateway.loopback_gateway import LoopbackGateway
from botpanel.infrastructure.http.dashboard_server import DashboardHttpServer
from botpanel.infrastructure.http.websocket_notifier import WebSocketNotifier
from botpanel.application.commands.builtins import builtin_commands
from botpanel.application.commands.loader import load_commands_from_directory
from botpanel.application.commands.registry import CommandRegistry
from botpanel.application.services.bot_core import BotCore
from botpanel.application.use_cases.dashboard import DashboardUseCase


def configure_logging():
    """Configures application-wide logging."""
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=settings.LOG_LEVEL
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)


def build_registry(repositories: Repositories) -> CommandRegistry:
    """Built-in commands plus any scripts found in SCRIPTS_DIR."""
    logger = logging.getLogger(__name__)
    registry = CommandRegistry(repositories.commands, builtin_commands())
    for handler in load_commands_from_directory(settings.SCRIPTS_DIR):
        if handler.name in registry:
            logger.warning(f"Script command '{handler.name}' clashes with a registered command, skipped.")
            continue
        registry.register(handler)
    return registry


def initialize_components(gateway: IGateway) -> DashboardHttpServer:
    """Initialize all application components."""
    logger = logging.getLogger(__name__)
    logger.info("Initializing application components...")

    # 1. Initialize Repositories
    repositories = create_sqlite_repositories(settings.DATABASE_PATH)
    logger.info("Repositories initialized.")

    # 2. Initialize Commands
    registry = build_registry(repositories)
    logger.info(f"Command registry initialized with {len(registry)} commands.")

    # 3. Initialize Services
    notifier = WebSocketNotifier()
    bot_core = BotCore(
        repositories=repositories,
        registry=registry,
        gateway=gateway,
        notifier=notifier,
        restart_settle_seconds=settings.RESTART_SETTLE_SECONDS
    )
    dashboard = DashboardUseCase(repositories=repositories, reporter=bot_core.reporter)
    logger.info("Services initialized.")

    # 4. Initialize HTTP Server
    server = DashboardHttpServer(
        bot_core=bot_core,
        dashboard=dashboard,
        notifier=notifier,
        api_key=settings.API_KEY
    )
    logger.info("HTTP dashboard server initialized.")
    return server


async def main_async():
    """Main async function."""
    configure_logging()
    logger = logging.getLogger(__name__)

    try:
        # No real platform binding ships with the panel; the loopback gateway keeps it runnable.
        server = initialize_components(LoopbackGateway())

        config = uvicorn.Config(
            app=server.app,
            host=settings.HTTP_HOST,
            port=settings.HTTP_PORT,
            log_level="info"
        )
        logger.info(f"Starting HTTP server on http://{settings.HTTP_HOST}:{settings.HTTP_PORT}")
        await uvicorn.Server(config).serve()

    except KeyboardInterrupt:
        logger.info("Application shutting down due to KeyboardInterrupt...")
    except Exception as e:
        logger.critical(f"Unhandled exception in main: {e}", exc_info=True)
    finally:
        logger.info("Application finished.")


if __name__ == "__main__":
    asyncio.run(main_async())
