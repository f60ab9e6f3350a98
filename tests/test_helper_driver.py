"""Tests for the polkit-agent-helper-1 conversation driver.

The helper is replaced by small shell scripts speaking the same protocol.
"""
from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path

import pytest

from pkagent.adapters.helper.driver import HelperProcessDriver, find_helper
from pkagent.core import subprocess_tracker
from pkagent.core.errors import PolkitCancelledError, PolkitFailedError
from pkagent.core.events import CancellationHandle, PromptEventChannel, PromptPassword


async def next_event(channel: PromptEventChannel):
    return await asyncio.to_thread(channel.receive, 5)


def assert_reaped(pid_file: Path) -> None:
    pid = int(pid_file.read_text().strip())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


class TestConversation:
    async def test_password_then_success(self, channel, make_helper, tmp_path: Path):
        helper = make_helper(
            f'echo "$1" > {tmp_path}/user\n'
            "read cookie\n"
            f'echo "$cookie" > {tmp_path}/cookie\n'
            'echo "PAM_PROMPT_ECHO_OFF Password:"\n'
            "read pw\n"
            f'echo "$pw" > {tmp_path}/pw\n'
            "echo SUCCESS\n"
        )
        driver = HelperProcessDriver(channel, helper_path=helper)
        cancellation = CancellationHandle()
        task = asyncio.create_task(driver.authenticate("cookie-1", "bob", cancellation))

        event = await next_event(channel)
        assert isinstance(event, PromptPassword)
        assert event.prompt == "Password:"
        assert event.cancellation is cancellation
        event.reply.send("secret")

        await asyncio.wait_for(task, timeout=5)
        assert (tmp_path / "user").read_text() == "bob\n"
        assert (tmp_path / "cookie").read_text() == "cookie-1\n"
        assert (tmp_path / "pw").read_text() == "secret\n"
        assert subprocess_tracker.tracked() == frozenset()

    async def test_two_prompts(self, channel, make_helper, tmp_path: Path):
        helper = make_helper(
            "read cookie\n"
            'echo "PAM_PROMPT_ECHO_OFF Password:"\n'
            "read first\n"
            'echo "PAM_PROMPT_ECHO_OFF One-time code:"\n'
            "read second\n"
            f'echo "$first $second" > {tmp_path}/answers\n'
            "echo SUCCESS\n"
        )
        driver = HelperProcessDriver(channel, helper_path=helper)
        task = asyncio.create_task(driver.authenticate("c", "bob", CancellationHandle()))

        first = await next_event(channel)
        first.reply.send("hunter2")
        second = await next_event(channel)
        assert second.prompt == "One-time code:"
        second.reply.send("123456")

        await asyncio.wait_for(task, timeout=5)
        assert (tmp_path / "answers").read_text() == "hunter2 123456\n"

    async def test_informational_and_unknown_lines(self, channel, make_helper, caplog):
        helper = make_helper(
            "read cookie\n"
            'echo "PAM_TEXT_INFO Touch the key"\n'
            'echo "PAM_ERROR_MSG Account expires soon"\n'
            'echo "X_VENDOR_EXTENSION whatever"\n'
            "echo SUCCESS\n"
        )
        driver = HelperProcessDriver(channel, helper_path=helper)
        await asyncio.wait_for(
            driver.authenticate("c", "bob", CancellationHandle()), timeout=5
        )
        assert channel.try_receive() is None
        assert "X_VENDOR_EXTENSION" in caplog.text

    async def test_failure(self, channel, make_helper):
        helper = make_helper("read cookie\necho FAILURE\n")
        driver = HelperProcessDriver(channel, helper_path=helper)
        with pytest.raises(PolkitFailedError):
            await asyncio.wait_for(
                driver.authenticate("c", "bob", CancellationHandle()), timeout=5
            )

    async def test_echo_on_unsupported(self, channel, make_helper):
        helper = make_helper('read cookie\necho "PAM_PROMPT_ECHO_ON x"\nread answer\n')
        driver = HelperProcessDriver(channel, helper_path=helper)
        with pytest.raises(PolkitFailedError):
            await asyncio.wait_for(
                driver.authenticate("c", "bob", CancellationHandle()), timeout=5
            )
        assert channel.try_receive() is None

    async def test_end_of_output_without_result(self, channel, make_helper):
        helper = make_helper("read cookie\nexit 0\n")
        driver = HelperProcessDriver(channel, helper_path=helper)
        with pytest.raises(PolkitFailedError):
            await asyncio.wait_for(
                driver.authenticate("c", "bob", CancellationHandle()), timeout=5
            )

    async def test_missing_helper(self, channel, tmp_path: Path):
        driver = HelperProcessDriver(channel, helper_path=str(tmp_path / "nope"))
        with pytest.raises(PolkitFailedError):
            await driver.authenticate("c", "bob", CancellationHandle())


class TestCancellation:
    async def test_cancel_while_helper_blocks(self, channel, make_helper, tmp_path: Path):
        pid_file = tmp_path / "pid"
        helper = make_helper(f"echo $$ > {pid_file}\nread cookie\nexec sleep 30\n")
        driver = HelperProcessDriver(channel, helper_path=helper, grace_period=0.2)
        cancellation = CancellationHandle()
        task = asyncio.create_task(driver.authenticate("c", "bob", cancellation))
        await asyncio.sleep(0.3)

        start = time.monotonic()
        cancellation.cancel()
        with pytest.raises(PolkitCancelledError):
            await asyncio.wait_for(task, timeout=5)
        assert time.monotonic() - start < 2
        assert_reaped(pid_file)

    async def test_cancel_while_prompting(self, channel, make_helper):
        helper = make_helper(
            'read cookie\necho "PAM_PROMPT_ECHO_OFF Password:"\nread pw\necho SUCCESS\n'
        )
        driver = HelperProcessDriver(channel, helper_path=helper, grace_period=0.2)
        task = asyncio.create_task(driver.authenticate("c", "bob", CancellationHandle()))

        event = await next_event(channel)
        # The user dismissed the prompt.
        event.cancellation.cancel()
        with pytest.raises(PolkitCancelledError):
            await asyncio.wait_for(task, timeout=5)

        # A reply arriving after the fact is harmless.
        event.reply.send("too late")
        await asyncio.sleep(0)


class TestProcessCleanup:
    async def test_lingering_helper_is_killed(self, channel, make_helper, tmp_path: Path):
        pid_file = tmp_path / "pid"
        helper = make_helper(
            f"echo $$ > {pid_file}\n"
            "trap '' TERM\n"
            "read cookie\n"
            "echo SUCCESS\n"
            "exec sleep 30\n"
        )
        driver = HelperProcessDriver(channel, helper_path=helper, grace_period=0.3)

        start = time.monotonic()
        await asyncio.wait_for(
            driver.authenticate("c", "bob", CancellationHandle()), timeout=5
        )
        assert time.monotonic() - start < 2
        assert_reaped(pid_file)
        assert subprocess_tracker.tracked() == frozenset()

    async def test_task_cancelled_while_reaping(self, channel, make_helper, tmp_path: Path):
        pid_file = tmp_path / "pid"
        helper = make_helper(
            f"echo $$ > {pid_file}\n"
            "trap '' TERM\n"
            "read cookie\n"
            "echo SUCCESS\n"
            "exec sleep 30\n"
        )
        driver = HelperProcessDriver(channel, helper_path=helper, grace_period=2.0)
        task = asyncio.create_task(
            driver.authenticate("c", "bob", CancellationHandle())
        )
        await asyncio.sleep(0.5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(task, timeout=5)

        assert_reaped(pid_file)
        assert subprocess_tracker.tracked() == frozenset()


def test_find_helper_returns_a_path():
    assert find_helper().endswith("polkit-agent-helper-1")


class TestReplyFormatting:
    async def test_trailing_newline_stripped(self, channel, make_helper, tmp_path: Path):
        helper = make_helper(
            "read cookie\n"
            'echo "PAM_PROMPT_ECHO_OFF Password:"\n'
            "read pw\n"
            f'echo "$pw" > {tmp_path}/pw\n'
            "echo SUCCESS\n"
        )
        driver = HelperProcessDriver(channel, helper_path=helper)
        task = asyncio.create_task(driver.authenticate("c", "bob", CancellationHandle()))
        event = await next_event(channel)
        event.reply.send("secret\r\n")
        await asyncio.wait_for(task, timeout=5)
        assert (tmp_path / "pw").read_text() == "secret\n"

    async def test_embedded_newline_rejected(self, channel, make_helper, tmp_path: Path):
        helper = make_helper(
            "read cookie\n"
            'echo "PAM_PROMPT_ECHO_OFF Password:"\n'
            "read pw\n"
            f'echo "$pw" > {tmp_path}/pw\n'
            "echo SUCCESS\n"
        )
        driver = HelperProcessDriver(channel, helper_path=helper, grace_period=0.2)
        task = asyncio.create_task(driver.authenticate("c", "bob", CancellationHandle()))
        event = await next_event(channel)
        event.reply.send("sec\nret")
        with pytest.raises(PolkitFailedError):
            await asyncio.wait_for(task, timeout=5)
        # Nothing but the end of input reached the helper.
        assert (tmp_path / "pw").read_text() == "\n"
