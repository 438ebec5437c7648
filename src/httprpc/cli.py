from __future__ import annotations

import argparse
import logging
import os
import subprocess
from typing import List, Optional

from .config import ServerConfig

DEFAULT_APP = "httprpc.server:create_app()"

logger = logging.getLogger("httprpc.cli")


def build_config(args: argparse.Namespace) -> ServerConfig:
    config = ServerConfig.from_yaml(args.config) if args.config else ServerConfig()
    for name in ("host", "port", "path", "workers", "timeout", "log_level"):
        value = getattr(args, name)
        if value is not None:
            setattr(config, name, value)
    if args.targets:
        config.targets = list(args.targets)
    return config


def gunicorn_cmd(config: ServerConfig, app: str = DEFAULT_APP) -> List[str]:
    return [
        "gunicorn",
        "-w", str(config.workers),
        "-b", f"{config.host}:{config.port}",
        "-t", str(config.timeout),
        "--log-level", config.log_level.lower(),
        app,
    ]


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="httprpc-server")
    p.add_argument("targets", nargs="*", help="Objects to register, as 'module:attribute'.")
    p.add_argument("-c", "--config", default=None, help="YAML file with ServerConfig fields.")
    p.add_argument("-H", "--host", default=None)
    p.add_argument("-p", "--port", type=int, default=None)
    p.add_argument("-w", "--workers", type=int, default=None)
    p.add_argument("-t", "--timeout", type=int, default=None)
    p.add_argument("--path", default=None, help="URL path of the RPC endpoint.")
    p.add_argument("--log-level", default=None)
    p.add_argument("--dev", action="store_true", help="Serve in-process with the Werkzeug server instead of gunicorn.")
    return p


def main(argv: Optional[List[str]] = None) -> None:
    p = build_parser()
    args = p.parse_args(argv)
    config = build_config(args)
    logging.basicConfig(level=config.log_level.upper())

    if not config.targets:
        p.error("no targets to register")

    if args.dev:
        from .server import create_app
        from .service import Service

        service = Service.from_targets(config.targets)
        logger.info("Methods: %s", ", ".join(service.method_names()))
        app = create_app(service, config.path)
        app.run(host=config.host, port=config.port, threaded=True)
        return

    env = os.environ.copy()
    env.update(config.to_env())
    logger.info("Starting gunicorn on %s:%d", config.host, config.port)
    try:
        subprocess.run(gunicorn_cmd(config), env=env, check=True)
    except KeyboardInterrupt:
        print("\nStopping server...")


if __name__ == "__main__":
    main()
