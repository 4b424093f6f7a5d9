import importlib.util
import inspect
import logging
from pathlib import Path
from typing import List, Union

from .base import CommandHandler, FunctionCommand

logger = logging.getLogger(__name__)

REQUIRED_ATTRIBUTES = ("name", "description", "category", "usage", "cooldown", "execute")


def load_command_module(path: Path) -> CommandHandler:
    """
    Import a single command script.

    The module must define ``name``, ``description``, ``category``, ``usage``,
    ``cooldown`` and an ``async def execute(ctx)``. Raises ValueError otherwise.
    """
    module_name = f"botpanel_script_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ValueError(f"Cannot import {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    missing = [attr for attr in REQUIRED_ATTRIBUTES if not hasattr(module, attr)]
    if missing:
        raise ValueError(f"{path.name} is missing: {', '.join(missing)}")
    if not inspect.iscoroutinefunction(module.execute):
        raise ValueError(f"{path.name}: execute must be an async function")

    return FunctionCommand(
        name=str(module.name),
        func=module.execute,
        description=str(module.description),
        category=str(module.category),
        usage=str(module.usage),
        cooldown=int(module.cooldown)
    )


def load_commands_from_directory(directory: Union[str, Path]) -> List[CommandHandler]:
    """Load every ``*.py`` script in ``directory``. Broken scripts are logged and skipped."""
    scripts_dir = Path(directory)
    if not scripts_dir.is_dir():
        logger.debug(f"Scripts directory {scripts_dir} does not exist, no plugins loaded.")
        return []

    handlers: List[CommandHandler] = []
    for path in sorted(scripts_dir.glob("*.py")):
        if path.name.startswith("_") or not path.is_file():
            continue
        try:
            handler = load_command_module(path)
        except Exception as e:
            logger.error(f"Error loading command script {path.name}: {e}", exc_info=True)
            continue
        logger.info(f"Loaded command script {path.name} as '{handler.name}'")
        handlers.append(handler)
    return handlers
