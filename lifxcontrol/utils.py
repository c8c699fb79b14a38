"""
Helpers for command line scripts built on lifxcontrol
"""
import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional

from colorama import Fore, Style

from .config import LifxConfig
from .exceptions import LifxError
from .interface import LifxControl


def run_control(main_func: Callable[[LifxControl], Awaitable[None]],
                config: Optional[LifxConfig] = None,
                logger: Optional[logging.Logger] = None) -> None:
    """
    Open a LifxControl, pass it to main_func and close it again however main_func ends.

    Exit status is 0 on success or Ctrl+C, 2 when main_func fails with a LifxError
    (timeouts, bad replies, socket errors) and 1 for anything else.
    """
    async def runner():
        async with LifxControl(logger=logger, config=config) as lifx:
            await main_func(lifx)

    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        print("\nInterrupted, sockets closed")
        sys.exit(0)
    except LifxError as e:
        print(Fore.RED + f"LIFX error: {type(e).__name__}: {e}" + Style.RESET_ALL)
        sys.exit(2)
    except Exception as e:
        print(Fore.RED + f"Error: {e!r}" + Style.RESET_ALL)
        sys.exit(1)
