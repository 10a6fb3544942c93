"""Main entry point for the APM latency agent"""

import sys
import argparse

from latency_agent import __version__
from latency_agent.config.settings import load_config
from latency_agent.errors import ConfigError
from latency_agent.utils.logger import setup_logger
from latency_agent.agent import Agent


def parse_args(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description='APM transaction latency monitoring agent'
    )

    parser.add_argument(
        '--config',
        '-c',
        type=str,
        default=None,
        help='Path to configuration file (YAML)'
    )

    parser.add_argument(
        '--log-level',
        '-l',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default=None,
        help='Override log level'
    )

    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single monitoring cycle and exit'
    )

    parser.add_argument(
        '--version',
        '-v',
        action='version',
        version=f'APM Latency Agent v{__version__}'
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point"""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    # Override log level from command line
    if args.log_level:
        config['agent']['log_level'] = args.log_level

    logger = setup_logger(config)
    logger.info("=" * 60)
    logger.info(f"APM Latency Agent v{__version__}")
    logger.info("=" * 60)

    if args.config:
        logger.info(f"Loaded configuration from: {args.config}")
    else:
        logger.info("Using default configuration with environment overrides")

    try:
        agent = Agent(config)

        if args.once:
            return 0 if agent.run_cycle() else 1

        agent.start()
        return 0

    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
        return 0
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
