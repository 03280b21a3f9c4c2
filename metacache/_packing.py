from __future__ import annotations

from typing import Optional, cast

import msgpack

from metacache._models import MetaRecord


def pack(entries: MetaRecord) -> bytes:
    return cast(
        bytes,
        msgpack.packb(
            [[request_headers, response_headers] for request_headers, response_headers in entries],
            use_bin_type=True,
        ),
    )


def unpack(value: Optional[bytes]) -> MetaRecord:
    """
    Restores a meta record, treating a missing value as an empty record.
    """
    if not value:
        return []
    data = msgpack.unpackb(value, raw=False)
    return [(dict(request_headers), dict(response_headers)) for request_headers, response_headers in data]
