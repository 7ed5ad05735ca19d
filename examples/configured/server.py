# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Configuration-driven host with environment-conditional middleware.

Run from this directory::

    TESSERA_ENVIRONMENT=Development uv run python server.py

``appsettings.json`` is required; ``appsettings.local.ini`` is optional and
overrides it; both take precedence over command-line arguments.  HTTPS
redirection only applies outside development.
"""

from __future__ import annotations

from pathlib import Path
import sys

from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware

from tessera import Configuration, configuration, web_host
from tessera.context import HttpContext
from tessera.response import of_json, of_plain_text
from tessera.routing import get


HERE = Path(__file__).parent


async def greeting(ctx: HttpContext) -> None:
    config: Configuration = ctx.get_service(Configuration)
    await of_plain_text(config.get("greeting", "Hello"))(ctx)


async def settings(ctx: HttpContext) -> None:
    config: Configuration = ctx.get_service(Configuration)
    await of_json(dict(config.get_section("server")))(ctx)


def main() -> None:
    config = (
        configuration(sys.argv[1:])
        .base_path(HERE)
        .add_env()
        .required_json("appsettings.json")
        .optional_ini("appsettings.local.ini")
    )

    web_host(sys.argv[1:]) \
        .configuration(config) \
        .logging(lambda log: log.add_filter("uvicorn.access", "WARNING")) \
        .use_ifnot(lambda app: app.is_development, lambda app: app.use(HTTPSRedirectMiddleware)) \
        .use_hsts() \
        .use_static_files(HERE / "wwwroot") \
        .use_request_logging() \
        .endpoints([get("/", greeting), get("/settings", settings)]) \
        .run()


if __name__ == "__main__":
    main()
