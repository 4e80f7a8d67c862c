"""Scan and document settings.

Defaults can be overridden with APISCAN_* environment variables, and the
CLI overrides both.
"""

import os

from pydantic import BaseModel

ENV_PREFIX = "APISCAN_"


class ScanConfig(BaseModel):
    output_format: str = "yaml"  # yaml / json
    max_schema_depth: int = 7
    time_budget_seconds: float = 120.0
    server_url: str = "http://localhost:8080"
    api_version: str = "1.0.0"
    title: str = "API Documentation"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> "ScanConfig":
        """Build a config from APISCAN_<FIELD> variables plus explicit overrides."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ:
                values[name] = environ[key]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
