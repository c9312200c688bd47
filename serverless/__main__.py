"""
Command line entrypoint.

    serverless server [-c CONNECTION_STRING] [--hub HUB]
    serverless client <user_id> [-c CONNECTION_STRING] [--hub HUB]
"""

import argparse
import asyncio
import sys
from typing import List, Optional

import structlog

from .config import LOG_LEVELS, ServerlessSettings
from .handlers.client import ClientHandler, HubConnectionError
from .handlers.server import ServerHandler
from .logging_config import configure_logging
from .service_utils import ConfigurationError

logger = structlog.get_logger(__name__)


def get_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ''' Parse command line arguments. '''
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '-c', '--connection-string',
        help='Hub service connection string (default: $AZURE_SIGNALR_CONNECTION_STRING)'
    )
    common.add_argument(
        '--hub',
        dest='hub_name',
        help='Hub name (default: $SERVERLESS_HUB_NAME or ServerlessSample)'
    )
    common.add_argument(
        '--log-level',
        type=str.upper,
        choices=LOG_LEVELS,
        help='Set logging verbosity (default: WARNING)'
    )
    common.add_argument(
        '--json-logs',
        action='store_true',
        default=None,
        help='Render logs as JSON'
    )

    arg_parser = argparse.ArgumentParser(
        prog='serverless',
        description='Serverless hub demo'
    )
    commands = arg_parser.add_subparsers(dest='command', required=True)
    commands.add_parser('server', parents=[common],
                        help='Read send commands from stdin and push them to the hub')
    client = commands.add_parser('client', parents=[common],
                                 help='Connect to the hub and print received messages')
    client.add_argument('user_id', help='User id to connect as')

    return arg_parser.parse_args(argv)


async def run_server(settings: ServerlessSettings) -> None:
    handler = ServerHandler(
        settings.connection_string,
        settings.hub_name,
        token_lifetime=settings.token_lifetime,
    )
    await handler.start()


async def run_client(settings: ServerlessSettings, user_id: str) -> None:
    client = ClientHandler(
        settings.connection_string,
        settings.hub_name,
        user_id,
        token_lifetime=settings.token_lifetime,
    )
    try:
        await client.start()
        print(f"Client {user_id} started, listening on hub {settings.hub_name} (Ctrl+C to exit)")
        await client.run_until_stopped()
    finally:
        await client.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    args = get_args(argv)

    try:
        settings = ServerlessSettings.load({
            "connection_string": args.connection_string,
            "hub_name": args.hub_name,
            "log_level": args.log_level,
            "json_logs": args.json_logs,
        })
    except ConfigurationError as e:
        configure_logging()
        logger.error("configuration_error", error=str(e))
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level, settings.json_logs)

    try:
        if args.command == 'server':
            asyncio.run(run_server(settings))
        else:
            asyncio.run(run_client(settings, args.user_id))
    except ConfigurationError as e:
        logger.error("configuration_error", error=str(e))
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except HubConnectionError as e:
        logger.error("hub_connection_failed", error=str(e))
        print(f"Connection failed: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")

    return 0


if __name__ == '__main__':
    sys.exit(main())
