"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from flask import Flask

from sessionauth.core.config import BaseConfig, get_config
from sessionauth.core.logger import configure_logging, init_app as init_logging
from sessionauth.services._shared.ports import (
    CredentialVerifier,
    InMemoryCredentialVerifier,
    TokenCache,
)


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    credential_verifier: CredentialVerifier | None = None,
    token_cache: TokenCache | None = None,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :param config: Config class, instance or ``APP_ENV`` name.
    :param credential_verifier: Adapter to the service owning user
        credentials. Defaults to an empty in-memory verifier.
    :param token_cache: Cache to use instead of the one derived from
        ``REDIS_URL``.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    if config is None or isinstance(config, str):
        config = get_config(config)
    app.config.from_object(config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    if token_cache is not None:
        app.extensions["token_cache"] = token_cache
    app.extensions["credential_verifier"] = credential_verifier or InMemoryCredentialVerifier(
        method=app.config.get("PASSWORD_HASH_METHOD", "scrypt")
    )

    from sessionauth.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from sessionauth.api import init_app as init_api

    init_api(app)

    from sessionauth.core import errors

    errors.init_app(app)

    from sessionauth import cli as app_cli

    app_cli.init_app(app)

    return app
