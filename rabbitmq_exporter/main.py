"""Main application entry point for the RabbitMQ exporter."""

import argparse
import asyncio
import logging
import os
import signal
import sys

from .config.loader import ConfigLoader
from .config.models import ExporterConfig
from .services.http_server import ScrapeServer
from .services.registry import Registry
from .services.scheduler import Scheduler
from .utils.logger import setup_logger

DEFAULT_CONFIG_PATH = "/etc/rabbitmq_exporter/config.json"


class ExporterApp:
    """
    Exporter application.

    Composition root: owns the registry, hands it to the scheduler for
    writes and to the scrape server for reads.
    """

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH, log_level: str = "INFO"):
        """
        Initialize exporter application.

        Args:
            config_path: Path to configuration file
            log_level: Logging level name

        Raises:
            SystemExit: If configuration cannot be loaded
        """
        self.config_path = config_path
        self.logger = setup_logger("rabbitmq_exporter", log_level)
        self.config = self._load_config()
        self.registry = Registry()
        self.scheduler = Scheduler(self.config.node_targets(), self.registry, self.logger)
        self.server = None

    def _load_config(self) -> ExporterConfig:
        """
        Load and validate configuration.

        Returns:
            ExporterConfig: Loaded configuration

        Raises:
            SystemExit: If configuration is invalid
        """
        try:
            self.logger.info(f"Loading configuration from {self.config_path}")
            config = ConfigLoader.load_from_file(self.config_path)
            self.logger.info(f"Configuration loaded: {len(config.nodes)} node(s)")
            return config

        except FileNotFoundError:
            self.logger.error(f"Configuration file not found: {self.config_path}")
            sys.exit(1)

        except Exception as e:
            self.logger.error(f"Failed to load configuration: {e}", exc_info=True)
            sys.exit(1)

    async def run_once(self) -> bytes:
        """
        Poll every node once and return the rendered scrape output.

        Returns:
            bytes: Exposition text for all series
        """
        results = await self.scheduler.run_once()
        failed = results.count(False)
        if failed:
            self.logger.warning(f"{failed} of {len(results)} node(s) failed to report")
        return self.registry.render()

    async def serve(self) -> None:
        """Run the scrape server and polling loops until SIGINT/SIGTERM."""
        self.server = ScrapeServer(self.registry, self.config.port, logger=self.logger)
        self.server.start()

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, self._signal_handler, signum, stop_event)

        self.scheduler.start()
        try:
            await stop_event.wait()
        finally:
            await self.scheduler.stop()
            self.server.stop()

    def _signal_handler(self, signum, stop_event: asyncio.Event):
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received {signal_name}, shutting down...")
        stop_event.set()


def main():
    """
    CLI entry point.

    Parses command-line arguments and starts the exporter.
    """
    parser = argparse.ArgumentParser(
        description='Prometheus exporter for RabbitMQ management API overview metrics',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve metrics using the default config path
  rabbitmq-exporter

  # Use a custom config file
  rabbitmq-exporter --config.path config/config.yaml

  # Poll every node once and print the scrape output
  rabbitmq-exporter --config.path config/config.yaml --run-once
        """
    )

    parser.add_argument(
        '--config.path',
        dest='config_path',
        default=DEFAULT_CONFIG_PATH,
        help=f'Path to config file (default: {DEFAULT_CONFIG_PATH})'
    )

    parser.add_argument(
        '--run-once',
        action='store_true',
        help='Poll every node once, print metrics and exit'
    )

    parser.add_argument(
        '--log-level',
        default=os.getenv('LOG_LEVEL', 'INFO'),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO or LOG_LEVEL env var)'
    )

    args = parser.parse_args()

    app = ExporterApp(config_path=args.config_path, log_level=args.log_level)

    try:
        if args.run_once:
            output = asyncio.run(app.run_once())
            sys.stdout.write(output.decode("utf-8"))
        else:
            asyncio.run(app.serve())

    except Exception as e:
        logging.error(f"Exporter failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
