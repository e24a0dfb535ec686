import os
import logging
from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install

# ignore errors from these libs
import tomlkit, voluptuous, websockets, zeroconf

console = Console()

# log every frame / packet at debug level
CHATTY_LOGGERS = ("websockets", "zeroconf", "asyncio")


def setup_logging():
    FORMAT = "%(message)s"
    logging_handler = RichHandler(
        level=os.environ.get("LOGLEVEL", "INFO"),
        console=console,
        rich_tracebacks=True,
        tracebacks_suppress=[tomlkit, voluptuous, websockets, zeroconf]
    )

    logging.basicConfig(
        level="NOTSET", format=FORMAT, datefmt="[%X]", handlers=[logging_handler]
    )
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO)

    install(
        console = console
    )
