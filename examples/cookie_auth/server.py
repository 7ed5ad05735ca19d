# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Cookie authentication demo.

Usage::

    SESSION__SECRET_KEY=change-me uv run python examples/cookie_auth/server.py

Visit ``/account`` to be challenged, submit the form on ``/login`` and get
redirected back.  ``POST /logout`` clears the session.
"""

from __future__ import annotations

import html
import sys
from urllib.parse import parse_qs

from tessera import configuration, request, web_host
from tessera.auth import Principal
from tessera.context import HttpContext
from tessera.response import (
    challenge_with_redirect,
    of_html_string,
    sign_in_and_redirect,
    sign_out_and_redirect,
)
from tessera.routing import get, post


SCHEME = "cookies"

LOGIN_FORM = """<!doctype html>
<form method="post" action="/login?{query}">
  <input name="username" placeholder="username">
  <button>Sign in</button>
</form>
"""


async def login_page(ctx: HttpContext) -> None:
    await of_html_string(LOGIN_FORM.format(query=ctx.request.url.query))(ctx)


async def login(ctx: HttpContext) -> None:
    form = parse_qs(await request.get_body_string(ctx))
    username = form.get("username", ["guest"])[0]
    redirect_uri = request.get_query(ctx).get("redirect_uri", "/account")
    await sign_in_and_redirect(SCHEME, Principal(username), redirect_uri)(ctx)


async def account(ctx: HttpContext) -> None:
    if not ctx.is_authenticated:
        await challenge_with_redirect(SCHEME, "/account")(ctx)
        return
    name = html.escape(ctx.user.display_name)
    await of_html_string(f"<h1>Signed in as {name}</h1><form method='post' action='/logout'><button>Sign out</button></form>")(ctx)


def main() -> None:
    config = configuration(sys.argv[1:]).add_env().optional_env_file(".env")

    web_host(sys.argv[1:]) \
        .configuration(config) \
        .use_request_logging() \
        .use_sessions() \
        .add_cookie(SCHEME, login_path="/login") \
        .use_authentication() \
        .endpoints(
            [
                get("/login", login_page),
                post("/login", login),
                post("/logout", sign_out_and_redirect(SCHEME, "/account")),
                get("/account", account),
            ]
        ) \
        .run()


if __name__ == "__main__":
    main()
