"""
Main entry point for Compose-External-DNS.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path

from compose_external_dns import __version__
from compose_external_dns.config.config import Config
from compose_external_dns.controller.controller import Controller, SyncScheduler
from compose_external_dns.ddns.ddns import DdnsService
from compose_external_dns.provider.cloudflare import CloudflareProvider
from compose_external_dns.provider.params import CloudflareRecordFactory
from compose_external_dns.source.docker_container import DockerContainerSource
from compose_external_dns.utils.health import HealthCheckServer, HealthStatus


async def run(config: Config) -> None:
    """Wire the components together and synchronise until asked to stop."""
    logger = logging.getLogger("compose-external-dns")

    source = DockerContainerSource(config.docker_label)
    provider = CloudflareProvider(
        config.api_token(),
        config.entry_identifier,
        dry_run=config.dry_run,
    )
    factory = CloudflareRecordFactory(config.entry_identifier)
    ddns = DdnsService(
        interval_minutes=config.ddns_interval, lookup_url=config.ddns_lookup_url
    )
    controller = Controller(source, provider, factory, ddns)

    # Failing here aborts the process before anything is scheduled
    controller.initialize()

    if config.once:
        try:
            await controller.run_once()
        finally:
            if ddns.is_running:
                ddns.on_shutdown()
        return

    health = HealthStatus()
    scheduler = SyncScheduler(controller, interval=config.interval, health=health)
    health.is_running = lambda: scheduler.is_running

    health_server = None
    if config.health_enabled:
        health_server = HealthCheckServer(
            health, host=config.health_host, port=config.health_port
        )
        health_server.start()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        logger.debug(
            f"Starting synchronisation every {config.interval} seconds for label {config.docker_label}"
        )
        await scheduler.start()
        await stop_event.wait()
        logger.info("Shutting down Compose-External-DNS")
    finally:
        if scheduler.is_running:
            scheduler.on_shutdown()
        if ddns.is_running:
            ddns.on_shutdown()
        if health_server is not None:
            health_server.stop()


def main():
    """Main entry point."""
    # Setup logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logger = logging.getLogger("compose-external-dns")
    logger.info(f"Starting Compose-External-DNS v{__version__}")

    # Load configuration
    config_path = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    config = Config.from_yaml(config_path)

    # Set log level from configuration
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(log_level)
    # Set httpx logger level to WARNING unless root is DEBUG
    httpx_log_level = logging.DEBUG if log_level == logging.DEBUG else logging.WARNING
    logging.getLogger("httpx").setLevel(httpx_log_level)

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        print("\nShutting down Compose-External-DNS")
    except Exception as e:
        logger.critical(f"Compose-External-DNS stopped with an error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
