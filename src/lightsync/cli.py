"""Command line entry point: serve the control API for configured devices."""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from .api.app import init_app
from .common.exceptions import ConfigurationError
from .core.config import DeviceManagerConfig, SystemDefaults

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="lightsync device server")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--host", help="API host (overrides config)")
    parser.add_argument("--port", type=int, help="API port (overrides config)")
    parser.add_argument(
        "--mock-devices",
        type=int,
        default=0,
        help="Add N mock devices in addition to the configured ones",
    )
    parser.add_argument(
        "--led-count",
        type=int,
        default=SystemDefaults.DEFAULT_LED_COUNT,
        help="Zones per mock device",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser


def load_config(args: argparse.Namespace) -> DeviceManagerConfig:
    config = (
        DeviceManagerConfig.from_yaml(args.config)
        if args.config
        else DeviceManagerConfig.create_default()
    )
    if args.host:
        config.api.host = args.host
    if args.port:
        config.api.port = args.port
    for index in range(args.mock_devices):
        config.devices.append(
            {"type": "mock", "name": f"Mock {index + 1}", "num_pixels": args.led_count}
        )
    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with argument parsing"""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_config(args)
    except ConfigurationError as e:
        logger.error(f"Failed to load configuration: {e}")
        return 1

    app = init_app(config=config)
    logger.info(f"Serving {len(config.devices)} devices on {config.api.host}:{config.api.port}")
    uvicorn.run(app, host=config.api.host, port=config.api.port, log_level=args.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
