# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Minimal Tessera host.

Usage::

    uv run python examples/hello_world/server.py --server:port 8000

Routes:

* ``GET /`` – plain text greeting
* ``GET /hello/{name}`` – JSON greeting built from the route parameter
* ``GET /download`` – a small CSV attachment
* ``ANY /debug`` – echoes the request (development only)
"""

from __future__ import annotations

import sys

from tessera import request, web_host
from tessera.context import HttpContext
from tessera.response import (
    compose,
    debug_request,
    of_attachment,
    of_json,
    of_plain_text,
    with_headers,
    with_status_code,
)
from tessera.routing import any_, get


async def hello(ctx: HttpContext) -> None:
    name = request.get_route(ctx)["name"]
    await of_json({"message": f"Hello, {name}!"})(ctx)


def main() -> None:
    web_host(sys.argv[1:]) \
        .use_request_logging() \
        .use_compression() \
        .endpoints(
            [
                get("/", of_plain_text("Hello from Tessera")),
                get("/hello/{name}", hello),
                get("/download", of_attachment("numbers.csv", "text/csv", [], b"n,square\n2,4\n3,9\n")),
                any_("/debug", debug_request),
            ]
        ) \
        .not_found(
            compose(
                with_status_code(404),
                with_headers([("Cache-Control", "no-store")]),
                of_plain_text("Not found"),
            )
        ) \
        .run()


if __name__ == "__main__":
    main()
