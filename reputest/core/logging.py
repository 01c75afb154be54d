import logging

from rich.console import Console
from rich.logging import RichHandler

_PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "INFO") -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)

    try:
        console = Console(width=120)

        rich_handler = RichHandler(
            console=console,
            show_time=True,
            show_level=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            tracebacks_width=120,
        )
        rich_handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]"))

        logging.basicConfig(level=level, handlers=[rich_handler], force=True)
        logging.getLogger("reputest").debug("Rich logging enabled")
    except Exception as e:
        logging.basicConfig(level=level, format=_PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S", force=True)
        logging.getLogger("reputest").warning(
            f"Failed to setup Rich logging: {e}, using standard logging"
        )

    # httpx logs every request URL at INFO, which includes query parameters
    logging.getLogger("httpx").setLevel(logging.INFO if level == logging.DEBUG else logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.ERROR)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
