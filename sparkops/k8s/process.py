"""Local spark-submit process whose output is buffered line by line."""

import logging
import subprocess
import threading
from typing import IO, List, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_DESTROY_GRACE_PERIOD = 5  # seconds


class LineBufferedProcess:
    """Subprocess whose stdout and stderr are drained into lists of lines.

    Reader threads keep the pipes empty so the child never blocks on a full
    buffer; the collected lines are surfaced through the application log.

    Example:
        process = LineBufferedProcess(["spark-submit", "--master", "k8s://...", "app.py"])
        process.wait()
        print(process.error_lines)
    """

    def __init__(self, args: Sequence[str], **popen_kwargs):
        """Start the process.

        Args:
            args: Command line
            **popen_kwargs: Extra ``subprocess.Popen`` arguments
        """
        self.args = list(args)
        self.input_lines: List[str] = []
        self.error_lines: List[str] = []
        self._process = subprocess.Popen(
            self.args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            **popen_kwargs,
        )
        self._readers = [
            self._start_reader(self._process.stdout, self.input_lines, "stdout"),
            self._start_reader(self._process.stderr, self.error_lines, "stderr"),
        ]
        logger.info(f"Started process {self._process.pid}: {' '.join(self.args)}")

    def _start_reader(self, stream: IO[str], lines: List[str], name: str) -> threading.Thread:
        def drain():
            with stream:
                for line in stream:
                    lines.append(line.rstrip("\n"))

        thread = threading.Thread(
            target=drain, name=f"process-{self._process.pid}-{name}", daemon=True
        )
        thread.start()
        return thread

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def exit_code(self) -> Optional[int]:
        """Exit code, or None while the process is running."""
        return self._process.poll()

    def is_alive(self) -> bool:
        return self._process.poll() is None

    def wait(self, timeout: Optional[float] = None) -> int:
        """Wait for the process to exit and its output to be collected.

        Raises:
            subprocess.TimeoutExpired: If the process is still running after ``timeout``
        """
        exit_code = self._process.wait(timeout)
        for reader in self._readers:
            reader.join()
        return exit_code

    def destroy(self, grace_period: float = DEFAULT_DESTROY_GRACE_PERIOD):
        """Terminate the process, killing it if it outlives ``grace_period``."""
        if not self.is_alive():
            return

        self._process.terminate()
        try:
            self._process.wait(grace_period)
        except subprocess.TimeoutExpired:
            logger.warning(f"Process {self.pid} ignored SIGTERM, killing it")
            self._process.kill()
            self._process.wait()
