"""Run TensorFlow Serving as a child process for the duration of one request."""

import logging
import subprocess
import sys
import threading
import time
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable

from batch_predictor.config import Config
from batch_predictor.exceptions import ProcessError, ReadinessTimeoutError

logger = logging.getLogger(__name__)

READ_SIZE = 1024
POLL_INTERVAL = 0.1
KILL_WAIT = 10.0


class ServerState(str, Enum):
    """Lifecycle of the inference server process."""

    NOT_STARTED = "not_started"
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"
    TERMINATED = "terminated"


def _write_stderr(chunk: bytes) -> None:
    sys.stderr.write(chunk.decode("utf-8", errors="replace"))
    sys.stderr.flush()


class ReadinessWatcher:
    """
    Drains a log stream on a background thread and waits for a marker.

    Every chunk read is re-emitted to the sink so the server log stays visible.
    Draining continues after the marker is seen, until the stream ends, so the
    child process never blocks on a full pipe. The stream is closed once it
    ends.
    """

    def __init__(
        self,
        stream: BinaryIO,
        marker: str,
        sink: Callable[[bytes], None] = _write_stderr,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: float = POLL_INTERVAL,
    ):
        """
        Initialize the watcher.

        Args:
            stream: Binary log stream (the server's stderr).
            marker: Text whose appearance means the server is ready.
            sink: Called with every chunk read.
            clock: Monotonic time source used for the timeout.
            poll_interval: Longest single sleep while waiting.
        """
        self._stream = stream
        self._marker = marker.encode("utf-8")
        self._sink = sink
        self._clock = clock
        self._poll_interval = poll_interval

        self._ready = threading.Event()
        self._finished = threading.Event()
        self._error: Exception | None = None
        self._startup_log = bytearray()
        self._thread: threading.Thread | None = None

    @property
    def startup_log(self) -> bytes:
        """Everything read up to and including the chunk holding the marker."""
        return bytes(self._startup_log)

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._drain, name="inference-server-log", daemon=True
        )
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def wait(self, timeout: float) -> None:
        """
        Block until the marker is seen.

        Raises:
            ReadinessTimeoutError: If the marker is not seen within timeout.
            ProcessError: If the stream fails or ends before the marker.
        """
        deadline = self._clock() + timeout
        while not self._ready.is_set():
            if self._finished.is_set():
                if self._error is not None:
                    raise ProcessError(f"Failed reading inference server log: {self._error}")
                raise ProcessError("Inference server exited before it was ready")

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise ReadinessTimeoutError(timeout)
            self._ready.wait(min(remaining, self._poll_interval))

    def _drain(self) -> None:
        read = getattr(self._stream, "read1", None) or self._stream.read
        tail = b""
        try:
            while True:
                chunk = read(READ_SIZE)
                if not chunk:
                    break
                self._sink(chunk)
                if self._ready.is_set():
                    continue

                self._startup_log.extend(chunk)
                # The marker may straddle two reads
                if self._marker in tail + chunk:
                    self._ready.set()
                tail = chunk[-(len(self._marker) - 1):] if len(self._marker) > 1 else b""
        except (OSError, ValueError) as e:
            self._error = e
        finally:
            self._close_stream()
            self._finished.set()

    def _close_stream(self) -> None:
        try:
            self._stream.close()
        except OSError as e:
            logger.warning("Failed to close inference server log: %s", e)


class InferenceServer:
    """
    Supervises one tensorflow_model_server process.

    Use as a context manager: entering starts the process and waits until it
    is ready, leaving always kills it.
    """

    def __init__(
        self,
        model_base_path: Path,
        *,
        binary: str = "tensorflow_model_server",
        model_name: str = "mymodel",
        grpc_port: int = 8500,
        rest_port: int = 8501,
        readiness_marker: str = "Exporting HTTP/REST API",
        startup_timeout: float = 30.0,
        launcher: Callable[..., subprocess.Popen] = subprocess.Popen,
        log_sink: Callable[[bytes], None] = _write_stderr,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.model_base_path = Path(model_base_path)
        self.binary = binary
        self.model_name = model_name
        self.grpc_port = grpc_port
        self.rest_port = rest_port
        self.readiness_marker = readiness_marker
        self.startup_timeout = startup_timeout

        self._launcher = launcher
        self._log_sink = log_sink
        self._clock = clock
        self._process: subprocess.Popen | None = None
        self._watcher: ReadinessWatcher | None = None
        self._state = ServerState.NOT_STARTED

    @classmethod
    def from_config(cls, settings: Config, model_base_path: Path) -> "InferenceServer":
        return cls(
            model_base_path,
            binary=settings.server_binary,
            model_name=settings.model_name,
            grpc_port=settings.grpc_port,
            rest_port=settings.rest_port,
            readiness_marker=settings.readiness_marker,
            startup_timeout=settings.startup_timeout,
        )

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def command(self) -> list[str]:
        return [
            self.binary,
            f"--port={self.grpc_port}",
            f"--rest_api_port={self.rest_port}",
            f"--model_name={self.model_name}",
            f"--model_base_path={self.model_base_path}",
        ]

    def start(self) -> None:
        """
        Launch the server process and begin watching its log.

        Raises:
            ProcessError: If the process cannot be launched.
        """
        if self._state != ServerState.NOT_STARTED:
            raise ProcessError(f"Inference server already {self._state.value}")

        logger.info("Starting inference server: %s", " ".join(self.command))
        self._state = ServerState.STARTING
        try:
            self._process = self._launcher(self.command, stderr=subprocess.PIPE)
        except OSError as e:
            self._state = ServerState.FAILED
            raise ProcessError(f"Failed to launch {self.binary}: {e}") from e

        self._watcher = ReadinessWatcher(
            self._process.stderr,
            self.readiness_marker,
            sink=self._log_sink,
            clock=self._clock,
        )
        self._watcher.start()

    def wait_until_ready(self) -> None:
        """
        Block until the server log shows the readiness marker.

        Raises:
            ReadinessTimeoutError: If not ready within startup_timeout.
            ProcessError: If the server exits or its log cannot be read.
        """
        if self._watcher is None:
            raise ProcessError("Inference server was not started")

        started = self._clock()
        try:
            self._watcher.wait(self.startup_timeout)
        except ProcessError as e:
            self._state = ServerState.FAILED
            logger.error("Inference server failed to start: %s", e)
            raise

        self._state = ServerState.READY
        logger.info(
            "Inference server ready after %.1fs. Continue the process",
            self._clock() - started,
        )

    def stop(self) -> None:
        """Kill the server process. Safe to call more than once."""
        if self._process is None or self._state == ServerState.TERMINATED:
            return

        logger.info("Stopping inference server (pid %s)", self._process.pid)
        try:
            self._process.kill()
            self._process.wait(timeout=KILL_WAIT)
        except ProcessLookupError:
            logger.debug("Inference server already exited")
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Failed to stop inference server cleanly: %s", e)

        if self._watcher is not None:
            self._watcher.join(timeout=1.0)
        self._state = ServerState.TERMINATED

    def __enter__(self) -> "InferenceServer":
        self.start()
        try:
            self.wait_until_ready()
        except BaseException:
            self.stop()
            raise
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        self.stop()
        return False
