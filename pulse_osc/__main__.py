"""Entry point for pulse-osc."""

import argparse
import asyncio
import logging
import signal
import sys

from .ble import scan_hr_devices
from .config import Config, ConfigError, load_config
from .discovery import ParameterDiscovery
from .feed import PulseFeed
from .log import setup_logging
from .osc import AvatarChangeListener, ParameterBridge
from .output import BpmFileWriter
from .state import SharedPulseState
from .supervisor import PulseSession

logger = logging.getLogger(__name__)

# Shutdown event for graceful termination
_shutdown_event: asyncio.Event | None = None


def _signal_handler() -> None:
    if _shutdown_event:
        logger.info("Shutdown requested...")
        _shutdown_event.set()


async def list_devices(config: Config, name_filter: str | None) -> None:
    """Print HR devices in range."""
    devices = await scan_hr_devices(timeout=config.link.scan_timeout, name_filter=name_filter)
    if not devices:
        print("No heart rate devices found.")
        return
    for address, name in devices:
        print(f"{name} ({address})")


async def run(
    config: Config,
    device: str | None,
    name_filter: str | None,
    port: int,
    write_txt: bool,
) -> None:
    """Run the sensor-to-OSC bridge until a shutdown signal arrives."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    bridge = ParameterBridge(beat_hold=config.osc.beat_hold)
    bridge.attach(config.osc.host, port)
    discovery = ParameterDiscovery(bridge, config.osc.query_url, config.osc.parameters)
    await discovery.refresh()

    listener = AvatarChangeListener(config.osc.host, config.osc.listen_port, discovery.refresh)
    try:
        await listener.start()
    except OSError as e:
        logger.warning("Cannot listen for avatar changes on port %d: %s", config.osc.listen_port, e)

    feed = None
    if config.feed.enabled:
        feed = PulseFeed(
            host=config.feed.host,
            port=config.feed.port,
            broadcast_timeout=config.feed.broadcast_timeout,
        )
        await feed.start()

    writer = BpmFileWriter(config.output.txt_path) if write_txt else None

    session = PulseSession(
        SharedPulseState(),
        bridge,
        address=device,
        name_filter=name_filter,
        scan_timeout=config.link.scan_timeout,
        timeout_interval=config.link.timeout_interval,
        restart_delay=config.link.restart_delay,
        poll_interval=config.link.poll_interval,
        writer=writer,
        feed=feed,
    )

    try:
        session_task = asyncio.create_task(session.run())
        shutdown_task = asyncio.create_task(_shutdown_event.wait())

        done, pending = await asyncio.wait(
            [session_task, shutdown_task],
            return_when=asyncio.FIRST_COMPLETED,
        )

        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
    finally:
        await session.stop()
        await listener.stop()
        if feed:
            await feed.stop()
        logger.info("Shutdown complete")


def main() -> None:
    """CLI entry point."""
    try:
        config = load_config()
    except ConfigError as e:
        setup_logging()
        logger.error("%s. Please fix or delete it and restart.", e)
        sys.exit(1)

    parser = argparse.ArgumentParser(description="BLE heart rate to OSC avatar parameters")
    parser.add_argument("-d", "--device", default=config.device.address or None, help="Device address (skip scanning)")
    parser.add_argument(
        "-n",
        "--name",
        default=config.device.name_filter or None,
        help="Filter by device name (case-insensitive, connects to first match)",
    )
    parser.add_argument("-p", "--port", type=int, default=config.osc.port, help="OSC send port")
    parser.add_argument(
        "--txt",
        action="store_true",
        default=config.output.write_to_txt,
        help=f"Mirror the current BPM to {config.output.txt_path}",
    )
    parser.add_argument("--list", action="store_true", help="List heart rate devices in range and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--debug-transport", action="store_true", help="Include BLE/OSC library debug output")
    args = parser.parse_args()

    log_level = "DEBUG" if args.verbose else config.output.log_level
    setup_logging(log_level, debug_transport=args.debug_transport)

    if args.list:
        asyncio.run(list_devices(config, args.name))
        return

    asyncio.run(run(config, args.device, args.name, args.port, args.txt))


if __name__ == "__main__":
    main()
