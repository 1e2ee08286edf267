import asyncio
import sys
from collections.abc import Coroutine
from typing import Any

import qasync
from loguru import logger
from PySide6.QtWidgets import QApplication


def run_with_asyncio(main_coro: Coroutine[Any, Any, int]) -> int:
    """Runs the application on an event loop shared by Qt and asyncio.

    A `qasync.QEventLoop` drives both Qt's GUI events and asyncio tasks on the
    main thread, so completed network calls resume on the thread that owns
    the widgets and can update them directly.

    Args:
        main_coro: The coroutine that builds the UI and starts the services.

    Returns:
        The exit code of the application.
    """
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)

    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)
    app.aboutToQuit.connect(loop.stop)
    logger.info("qasync QEventLoop installed as the current asyncio event loop.")

    exit_code = 0
    try:
        main_task = loop.create_task(main_coro)

        # Runs the Qt event loop until the last window closes.
        logger.info("Starting the Qt application event loop.")
        loop.run_forever()
        logger.info("Qt application event loop has finished.")

        if main_task.done() and not main_task.cancelled():
            exception = main_task.exception()
            if exception:
                logger.error(
                    f"The main application task exited with an exception: {exception}"
                )
                raise exception
            exit_code = main_task.result()

    finally:
        logger.info("Closing the asyncio event loop.")
        # Cancel what is left so no "Task was destroyed but it is pending!" warnings appear.
        tasks = asyncio.all_tasks(loop=loop)
        for task in tasks:
            task.cancel()
        if tasks:
            loop.run_until_complete(asyncio.gather(*tasks, return_exceptions=True))

        loop.close()
        asyncio.set_event_loop(None)
        logger.info("Asyncio event loop closed.")

    return exit_code
