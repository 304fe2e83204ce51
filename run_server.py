import os
import sys
import argparse

import tomli
import uvicorn
from dotenv import load_dotenv
from loguru import logger

from src.osc_monitor.server import MonitorServer
from src.osc_monitor.config_manager import Config, read_yaml, validate_config
from src.osc_monitor.logging_utils import (
    configure_stdlib_bridge,
    get_request_id,
    mask_secrets,
)


def get_version() -> str:
    with open("pyproject.toml", "rb") as f:
        pyproject = tomli.load(f)
    return pyproject["project"]["version"]


def init_logger(console_log_level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        "logs/app_{time:YYYY-MM-DD_HH-mm-ss_SSS}.jsonl",
        serialize=True,
        enqueue=True,
        filter=lambda x: x["level"].no >= 20,
        rotation="10 MB",
        retention="30 days",
        backtrace=False,
        diagnose=False,
    )

    # Optional DEBUG sink (controlled by console level or env APP_DEBUG)
    app_debug = os.environ.get("APP_DEBUG", "0").lower() in ("1", "true", "yes")
    if console_log_level.upper() == "DEBUG" or app_debug:
        logger.add(
            "logs/app_debug_{time:YYYY-MM-DD_HH-mm-ss_SSS}.jsonl",
            serialize=True,
            enqueue=True,
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
            backtrace=False,
            diagnose=False,
        )

    # Separate access log sink for uvicorn.access
    logger.add(
        "logs/access_{time:YYYY-MM-DD_HH-mm-ss_SSS}.jsonl",
        serialize=True,
        enqueue=True,
        filter=lambda r: r.get("extra", {}).get("src_logger") == "uvicorn.access",
        rotation="10 MB",
        retention="14 days",
        backtrace=False,
        diagnose=False,
    )

    # Keep a colored console handler for dev UX
    logger.add(
        sys.stderr,
        level=console_log_level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "{extra[component]}{extra[request_id]}{message}"
        ),
        colorize=True,
        enqueue=True,
    )

    # Inject request_id and sanitize via patcher
    def _patcher(record):  # pragma: no cover
        component_raw = record["extra"].get("component") or "app"
        record["extra"]["component"] = f"[{component_raw}] "
        rid = get_request_id()
        record["extra"]["request_id"] = f"[rid:{rid}] " if rid else ""
        if isinstance(record["message"], dict):
            record["message"] = mask_secrets(record["message"])  # type: ignore[assignment]

    logger.configure(patcher=_patcher)

    # Bridge stdlib, uvicorn and httpx to loguru
    configure_stdlib_bridge()


def parse_args():
    parser = argparse.ArgumentParser(description="OSC Monitor Server")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--config", default="conf.yaml", help="Path to the YAML configuration file"
    )
    parser.add_argument("--host", help="Override system_config.host")
    parser.add_argument("--port", type=int, help="Override system_config.port")
    return parser.parse_args()


@logger.catch
def run(console_log_level: str, config_path: str, host=None, port=None):
    load_dotenv()
    init_logger(console_log_level)
    logger.info(f"OSC Monitor, version v{get_version()}")

    # Load configurations from yaml file
    config: Config = validate_config(read_yaml(config_path))
    server_config = config.system_config
    if host:
        server_config.host = host
    if port is not None:
        server_config.port = port

    server = MonitorServer(config=config)

    logger.info(f"Starting server on {server_config.host}:{server_config.port}")
    uvicorn.run(
        app=server.app,
        host=server_config.host,
        port=server_config.port,
        log_level=console_log_level.lower(),
    )


if __name__ == "__main__":
    args = parse_args()
    console_log_level = "DEBUG" if args.verbose else "INFO"
    if args.verbose:
        logger.info("Running in verbose mode")
    else:
        logger.info(
            "Running in standard mode. For detailed debug logs, use: uv run run_server.py --verbose"
        )
    run(
        console_log_level=console_log_level,
        config_path=args.config,
        host=args.host,
        port=args.port,
    )
