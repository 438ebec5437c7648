from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Self

import yaml

ENV_PREFIX = "HTTPRPC_"


@dataclass
class ServerConfig:
    """Settings of the `httprpc-server` process."""
    host: str = "127.0.0.1"
    port: int = 5000
    path: str = "/rpc"
    workers: int = 4
    timeout: int = 600
    log_level: str = "INFO"
    # "module:attribute" paths of the objects to register
    targets: list[str] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: str) -> Self:
        """Load a `ServerConfig` from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> Self:
        config = cls()
        for f in fields(cls):
            raw = os.environ.get(prefix + f.name.upper())
            if raw is None:
                continue
            if f.name == "targets":
                value = [t.strip() for t in raw.split(",") if t.strip()]
            elif f.name in ("port", "workers", "timeout"):
                value = int(raw)
            else:
                value = raw
            setattr(config, f.name, value)
        return config

    def to_env(self, prefix: str = ENV_PREFIX) -> dict[str, str]:
        env = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "targets":
                value = ",".join(value)
            env[prefix + f.name.upper()] = str(value)
        return env
