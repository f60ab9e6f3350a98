from __future__ import annotations

import asyncio
import logging
import signal
import sys

from sdbus import sd_bus_open_system

from pkagent.adapters.dbus.interface import PolkitAgentInterface
from pkagent.adapters.dbus.proxies import authority_proxy, session_proxy
from pkagent.adapters.helper.driver import HelperProcessDriver
from pkagent.config import AgentConfig
from pkagent.core.agent import AuthenticationAgent
from pkagent.core.attempt import AttemptState
from pkagent.core.events import PromptEventChannel
from pkagent.core.registration import AgentRegistration
from pkagent.ui.dialog import TkPresentation

logger = logging.getLogger("pkagent")


def setup_logging(config: AgentConfig) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        handlers=handlers,
    )


async def serve(
    config: AgentConfig,
    channel: PromptEventChannel,
    stop_event: asyncio.Event,
    bus=None,
) -> None:
    """Export the agent, register it, and run until *stop_event* is set."""
    bus = bus or sd_bus_open_system()

    driver = HelperProcessDriver(
        channel, helper_path=config.helper_path, grace_period=config.grace_period
    )
    agent = AuthenticationAgent(driver, channel, AttemptState())
    interface = PolkitAgentInterface(agent)
    interface.export_to_dbus(config.object_path, bus)
    logger.info("Agent exported at %s (helper: %s)", config.object_path, driver.helper_path)

    registration = AgentRegistration(
        authority_proxy(bus), session_proxy(bus), config.locale, config.object_path
    )
    await registration.register()

    await stop_event.wait()

    logger.info("Shutting down...")
    if config.unregister_on_exit:
        await registration.unregister()
    else:
        logger.info("Leaving registration to bus disconnect")


async def main() -> None:
    config = AgentConfig.from_env()
    setup_logging(config)
    logger.info("pkagent starting...")

    channel = PromptEventChannel()
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def handle_signal() -> None:
        logger.info("Shutdown signal received")
        stop_event.set()

    def presentation_exited() -> None:
        # Runs in the presentation thread.
        if not loop.is_closed():
            loop.call_soon_threadsafe(stop_event.set)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    presentation = TkPresentation(channel, on_exit=presentation_exited)
    presentation.start()
    try:
        await serve(config, channel, stop_event)
    finally:
        channel.close()
        await asyncio.to_thread(presentation.join, 5)
        logger.info("pkagent stopped.")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except Exception:
        logger.exception("pkagent failed")
        sys.exit(1)


if __name__ == "__main__":
    run()
