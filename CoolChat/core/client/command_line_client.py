import asyncio
import logging
import threading
from typing import Callable

from CoolChat.core.message.protocol import EXIT_COMMAND
from .client_base import Client

logger = logging.getLogger(__name__)

DISCONNECTED = "Client was disconnected"


class StandardCommandlineClient(Client):
    """
    Standard command-line-based chat client implementation.

    Lines typed on stdin go to the server unchanged, so the login prompts,
    ``/private`` commands and ``exit`` are all plain input. Every line the
    server sends is printed as is.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 7700,
        input_func: Callable[[str], str] = input,
        output: Callable[[str], None] = print
    ):
        super().__init__(host, port)
        self._input = input_func
        self._output = output

    def _start_input_thread(self, loop: asyncio.AbstractEventLoop, lines: asyncio.Queue) -> threading.Thread:
        """
        Read stdin on a daemon thread and hand every line to ``lines``.

        The thread is a daemon, so a pending read never outlives the client.
        ``None`` marks end of input.
        """
        def pump():
            while True:
                try:
                    text = self._input("")
                except EOFError:
                    text = None
                try:
                    loop.call_soon_threadsafe(lines.put_nowait, text)
                except RuntimeError:
                    # event loop already closed
                    return
                if text is None or text == EXIT_COMMAND:
                    return

        thread = threading.Thread(target=pump, name="coolchat-stdin", daemon=True)
        thread.start()
        return thread

    async def send(self, writer: asyncio.StreamWriter, lines: asyncio.Queue) -> None:
        """
        Asynchronously send typed lines to the server until ``exit``.

        Args:
            writer: Stream writer of the server connection
            lines: Lines read from stdin, ``None`` at end of input
        """
        while True:
            text = await lines.get()
            if text is None:
                text = EXIT_COMMAND
            writer.write(f"{text}\n".encode("utf-8"))
            await writer.drain()
            if text == EXIT_COMMAND:
                return

    async def receive(self, reader: asyncio.StreamReader) -> None:
        """
        Asynchronously print lines received from the server until it hangs up.

        Args:
            reader: Stream reader of the server connection
        """
        while True:
            raw = await reader.readline()
            if not raw:
                return
            self._output(raw.decode("utf-8", errors="replace").rstrip("\r\n"))

    async def run(self) -> None:
        """
        Connect to the server and relay lines in both directions.

        Returns when the user types ``exit`` or the server closes the
        connection.
        """
        try:
            reader, writer = await asyncio.open_connection(self.host, self.port)
        except OSError as e:
            logger.error("Cannot connect to %s:%s: %s", self.host, self.port, e)
            self._output(DISCONNECTED)
            return

        self._output("Connection established!")
        lines: asyncio.Queue = asyncio.Queue()
        self._start_input_thread(asyncio.get_running_loop(), lines)
        tasks = [
            asyncio.create_task(self.receive(reader)),
            asyncio.create_task(self.send(writer, lines)),
        ]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            for task in done:
                error = task.exception()
                if error is not None:
                    logger.debug("Connection error: %s", error)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug("Error closing connection: %s", e)
        self._output(DISCONNECTED)
