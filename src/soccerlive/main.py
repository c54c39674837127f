"""
Main orchestrator for SoccerLive

Wires the feed client, scheduler, registry and publisher together, applies
display options from the host and keeps polling until shut down.
"""

import asyncio
import logging
import signal
import sys
import time
from typing import Dict, Any, Optional, Union

from .config import SoccerLiveConfig, DisplayOptions, load_config
from .client import FeedClient, create_client
from .enricher import create_enricher
from .publisher import ResultPublisher, create_publisher
from .registry import CompetitionRegistry, create_registry
from .scheduler import RefreshScheduler, create_scheduler
from .window import create_calculator

logger = logging.getLogger(__name__)


class SoccerLiveMain:
    """Main orchestrator for the SoccerLive service"""

    def __init__(self, config_path: str = "config/soccerlive.yaml",
                 config: Optional[SoccerLiveConfig] = None):
        self.config_path = config_path
        self.config = config
        self.client: Optional[FeedClient] = None
        self.publisher: Optional[ResultPublisher] = None
        self.scheduler: Optional[RefreshScheduler] = None
        self.registry: Optional[CompetitionRegistry] = None

        # Runtime state
        self.running = False
        self.startup_complete = False
        self.start_time = 0

    async def initialize(self):
        """Initialize all components"""
        logger.info("Initializing SoccerLive...")
        self.start_time = time.time()

        if self.config is None:
            self.config = load_config(self.config_path)
            logger.info(f"Loaded configuration from {self.config_path}")
        self._setup_logging()

        self.client = create_client(
            self.config.provider,
            self.config.display.language,
            self.config.max_concurrent_requests
        )
        await self.client.start()

        self.publisher = create_publisher(self.config.notification_prefix, self.config.output_file)
        self.scheduler = create_scheduler(
            self.config,
            self.client,
            self.publisher,
            create_calculator(self.config.polling),
            create_enricher(self.client, self.config.max_concurrent_requests)
        )
        self.registry = create_registry(self.client, self.scheduler, self.publisher)

        self.startup_complete = True
        logger.info(f"SoccerLive initialized in {time.time() - self.start_time:.2f}s")

    async def configure(self, options: Union[DisplayOptions, Dict[str, Any]]):
        """Apply a configuration message from the host"""
        if not self.startup_complete:
            await self.initialize()

        if not isinstance(options, DisplayOptions):
            options = DisplayOptions.from_payload(options, self.config.provider)

        logger.info(
            f"Configuring leagues {options.leagues} (language {options.language}, "
            f"standings={options.show_standings}, details={options.show_details}, "
            f"tables={options.show_tables}, scorers={options.show_scorers})"
        )
        return await self.registry.apply(options)

    async def start(self):
        """Start polling with the configured display options"""
        if self.running:
            logger.warning("SoccerLive already running")
            return

        if not self.startup_complete:
            await self.initialize()

        self.running = True
        await self.configure(self.config.display)

        if sys.platform != 'win32':
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda: asyncio.create_task(self.stop()))

    async def stop(self):
        """Stop all feeds and release the HTTP session"""
        if not self.running:
            return

        logger.info("Stopping SoccerLive...")
        self.running = False

        if self.scheduler:
            await self.scheduler.shutdown()

        if self.client:
            await self.client.close()

        logger.info("SoccerLive stopped")

    async def run_forever(self):
        """Run until stopped"""
        await self.start()

        try:
            while self.running:
                await asyncio.sleep(60)

                if self.running and self.scheduler:
                    stats = self.scheduler.get_polling_stats()
                    logger.info(
                        f"Status: {stats['live_timers']} timers armed, "
                        f"{stats['in_flight_polls']} polls in flight across {stats['competitions']} leagues"
                    )
        except Exception as e:
            logger.error(f"Unexpected error in main loop: {e}")
        finally:
            await self.stop()

    def _setup_logging(self):
        """Setup logging configuration"""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        logging.getLogger('aiohttp').setLevel(logging.WARNING)
        logging.getLogger('urllib3').setLevel(logging.WARNING)

        if self.config.log_file:
            file_handler = logging.FileHandler(self.config.log_file)
            file_handler.setFormatter(
                logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            )
            logging.getLogger().addHandler(file_handler)

    def get_status(self) -> Dict[str, Any]:
        """Get service status"""
        status = {
            'running': self.running,
            'startup_complete': self.startup_complete,
            'config_path': self.config_path,
        }

        if self.startup_complete:
            status['uptime'] = time.time() - self.start_time
            status['leagues'] = sorted(self.registry.competitions)
            status['scheduler'] = self.scheduler.get_polling_stats()

        return status


async def main():
    """Main entry point for SoccerLive"""
    import argparse

    parser = argparse.ArgumentParser(description='SoccerLive standings, tables and scorers feed')
    parser.add_argument('--config', default='config/soccerlive.yaml',
                        help='Configuration file path')
    parser.add_argument('--create-config', action='store_true',
                        help='Create sample configuration file and exit')
    parser.add_argument('--list-competitions', action='store_true',
                        help='Print the competitions offered by the provider and exit')

    args = parser.parse_args()

    if args.create_config:
        from .config import create_sample_config
        create_sample_config(args.config)
        print(f"Sample configuration created at {args.config}")
        return

    if args.list_competitions:
        from .catalog import list_competitions
        config = load_config(args.config)
        competitions = await asyncio.get_running_loop().run_in_executor(
            None, list_competitions, config.provider, config.display.language
        )
        if not competitions:
            print("No competitions available")
            return
        for competition in competitions:
            feeds = [name for name, enabled in (('table', competition.has_table),
                                                ('scorers', competition.has_scorers)) if enabled]
            print(f"  {competition.id:>6}  {competition.name}  {' '.join(feeds)}")
        return

    service = SoccerLiveMain(args.config)

    try:
        await service.run_forever()
    except KeyboardInterrupt:
        print("\nShutdown requested")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


def run():
    """Console script entry point"""
    asyncio.run(main())


if __name__ == "__main__":
    run()
