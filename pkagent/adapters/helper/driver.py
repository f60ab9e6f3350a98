from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pkagent.core import subprocess_tracker
from pkagent.core.errors import PolkitCancelledError, PolkitFailedError
from pkagent.core.events import (
    CancellationHandle,
    PromptEventChannel,
    PromptPassword,
    ReplyChannel,
)

logger = logging.getLogger(__name__)

# Where distributions install polkit's setuid helper, most common first.
HELPER_CANDIDATES = (
    "/usr/lib/polkit-1/polkit-agent-helper-1",
    "/usr/libexec/polkit-agent-helper-1",
    "/usr/lib/policykit-1/polkit-agent-helper-1",
    "/run/wrappers/bin/polkit-agent-helper-1",
)

DEFAULT_GRACE_PERIOD = 1.0


def find_helper() -> str:
    """Return the first installed helper, or the most common path if none is."""
    for candidate in HELPER_CANDIDATES:
        if Path(candidate).exists():
            return candidate
    return HELPER_CANDIDATES[0]


class HelperProcessDriver:
    """AuthDriverPort implementation wrapping polkit-agent-helper-1.

    The helper speaks a line protocol on stdin/stdout: we send the cookie,
    it answers with PAM conversation lines, we answer masked prompts with
    the password the user typed, and it finishes with SUCCESS or FAILURE.
    """

    def __init__(
        self,
        channel: PromptEventChannel,
        helper_path: str | None = None,
        grace_period: float = DEFAULT_GRACE_PERIOD,
    ) -> None:
        self._channel = channel
        self._helper_path = helper_path or find_helper()
        self._grace_period = grace_period

    @property
    def helper_path(self) -> str:
        return self._helper_path

    async def authenticate(
        self, cookie: str, username: str, cancellation: CancellationHandle
    ) -> None:
        """Authenticate *username* for *cookie*; see AuthDriverPort."""
        logger.info("Starting helper %s for %s", self._helper_path, username)
        try:
            process = await asyncio.create_subprocess_exec(
                self._helper_path,
                username,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error("Failed to start helper %s: %s", self._helper_path, e)
            raise PolkitFailedError(f"cannot start helper: {e}") from e

        subprocess_tracker.track(process.pid)
        try:
            await self._converse(process, cookie, cancellation)
        finally:
            try:
                await self._reap(process)
            finally:
                subprocess_tracker.untrack(process.pid)

    async def _converse(
        self,
        process: asyncio.subprocess.Process,
        cookie: str,
        cancellation: CancellationHandle,
    ) -> None:
        """Run the conversation loop until SUCCESS, failure or cancellation."""
        assert process.stdin is not None and process.stdout is not None
        await self._write_line(process, cookie)

        read_task = asyncio.ensure_future(process.stdout.readline())
        cancel_task = asyncio.ensure_future(cancellation.wait())
        replies: set[asyncio.Future[str]] = set()
        try:
            while True:
                done, _ = await asyncio.wait(
                    {read_task, cancel_task, *replies},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if cancel_task in done:
                    logger.info("Authentication %s cancelled", cookie)
                    raise PolkitCancelledError("authentication cancelled")

                for reply in [f for f in replies if f in done]:
                    replies.discard(reply)
                    await self._write_line(process, reply.result().rstrip("\r\n"))
                    logger.debug("Forwarded reply to helper")

                if read_task in done:
                    line = self._read_result(read_task)
                    if self._dispatch(line, cancellation, replies):
                        return
                    read_task = asyncio.ensure_future(process.stdout.readline())
        finally:
            read_task.cancel()
            cancel_task.cancel()
            for reply in replies:
                reply.cancel()

    def _read_result(self, read_task: asyncio.Future[bytes]) -> str:
        try:
            raw = read_task.result()
        except (ValueError, OSError) as e:
            # ValueError: line longer than the stream buffer limit
            raise PolkitFailedError(f"cannot read helper output: {e}") from e
        if not raw:
            logger.warning("Helper closed its output without a result")
            raise PolkitFailedError("helper exited without a result")
        return raw.decode("utf-8", errors="replace").rstrip("\n")

    def _dispatch(
        self,
        line: str,
        cancellation: CancellationHandle,
        replies: set[asyncio.Future[str]],
    ) -> bool:
        """Handle one helper line. Returns True once authentication succeeded."""
        token, _, message = line.partition(" ")

        if token == "PAM_PROMPT_ECHO_OFF":
            reply = ReplyChannel()
            replies.add(reply.future)
            self._channel.send(PromptPassword(reply, cancellation, prompt=message))
            logger.debug("Prompted for password: %s", message)
        elif token == "PAM_PROMPT_ECHO_ON":
            logger.warning("Unsupported echo-on prompt: %s", message)
            raise PolkitFailedError("echo-on prompts are not supported")
        elif token == "PAM_ERROR_MSG":
            logger.warning("Helper error message: %s", message)
        elif token == "PAM_TEXT_INFO":
            logger.info("Helper info: %s", message)
        elif token == "SUCCESS":
            logger.info("Authentication succeeded")
            return True
        elif token == "FAILURE":
            logger.info("Authentication failed")
            raise PolkitFailedError("authentication failed")
        else:
            logger.warning("Unknown helper output: %s", line[:200])
        return False

    async def _write_line(self, process: asyncio.subprocess.Process, text: str) -> None:
        assert process.stdin is not None
        if "\n" in text:
            # The helper reads one answer per line.
            raise PolkitFailedError("value for helper contains a newline")
        try:
            process.stdin.write(text.encode("utf-8") + b"\n")
            await process.stdin.drain()
        except OSError as e:
            logger.error("Failed to write to helper: %s", e)
            raise PolkitFailedError(f"cannot write to helper: {e}") from e

    async def _reap(self, process: asyncio.subprocess.Process) -> None:
        """Give the helper the grace period to exit, then kill it."""
        if process.stdin and not process.stdin.is_closing():
            process.stdin.close()
        try:
            await asyncio.wait_for(process.wait(), timeout=self._grace_period)
        except asyncio.TimeoutError:
            logger.warning(
                "Helper %d still running after %.1fs, killing",
                process.pid, self._grace_period,
            )
            self._kill(process)
            await process.wait()
        except asyncio.CancelledError:
            self._kill(process)
            await process.wait()
            raise
        logger.debug("Helper %d exited with %s", process.pid, process.returncode)

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
