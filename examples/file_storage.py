#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "metacache",
# ]
#
# [tool.uv.sources]
# metacache = { path = "../", editable = true }
# ///

import logging

from metacache import Headers, InMemoryBodyStore, MetaStore, Request, Response

logging.basicConfig(level=logging.DEBUG)

meta_store = MetaStore.from_uri("file:.cache/metacache/meta")
body_store = InMemoryBodyStore()


def fetch(accept_encoding: str) -> None:
    request = Request("GET", "https://example.com/", headers=Headers({"Accept-Encoding": accept_encoding}))

    response = meta_store.lookup(request, body_store)
    if response is None:
        print(f"➡ Miss for `{accept_encoding}`, storing a fresh response")
        response = Response(
            200,
            headers=Headers({"Content-Type": "text/plain", "Vary": "Accept-Encoding", "Cache-Control": "max-age=60"}),
            stream=iter([f"hello in {accept_encoding}".encode()]),
        )
        meta_store.store(request, response, body_store)

    print(f"🚀 {response.status_code} {response.read()!r}")


if __name__ == "__main__":
    fetch("gzip")
    fetch("gzip")
    fetch("identity")
