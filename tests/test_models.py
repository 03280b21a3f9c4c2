from datetime import datetime, timezone
from wsgiref.util import setup_testing_defaults

from time_machine import travel

from metacache import Headers, Request, Response


def test_protocol_headers():
    request = Request(
        "GET",
        "https://example.com/",
        headers=Headers({"Accept-Encoding": "gzip", "X.Weird": "dropped", "X-Number": 1}),  # type: ignore[dict-item]
    )

    assert request.protocol_headers() == {"HTTP_ACCEPT_ENCODING": "gzip"}


def test_request_from_environ():
    environ = {
        "REQUEST_METHOD": "POST",
        "PATH_INFO": "/items",
        "QUERY_STRING": "page=2",
        "HTTP_HOST": "example.com",
        "HTTP_ACCEPT_ENCODING": "gzip",
        "CONTENT_TYPE": "application/json",
    }
    setup_testing_defaults(environ)

    request = Request.from_environ(environ)

    assert request.method == "POST"
    assert request.url == "http://example.com/items?page=2"
    assert request.headers["accept-encoding"] == "gzip"
    assert request.headers["content-type"] == "application/json"
    assert request.protocol_headers()["HTTP_ACCEPT_ENCODING"] == "gzip"


def test_response_read_keeps_the_body():
    response = Response(200, stream=iter([b"he", b"llo"]))

    assert response.read() == b"hello"
    assert b"".join(response.stream) == b"hello"


@travel(datetime(2024, 1, 1, 0, 0, 30, tzinfo=timezone.utc), tick=False)
def test_response_max_age_freshness():
    response = Response(
        200,
        headers=Headers({"date": "Mon, 01 Jan 2024 00:00:00 GMT", "cache-control": "public, max-age=60"}),
    )

    assert response.age == 30
    assert response.max_age == 60
    assert response.ttl == 30
    assert response.is_fresh()


@travel(datetime(2024, 1, 1, 0, 0, 30, tzinfo=timezone.utc), tick=False)
def test_response_s_maxage_wins():
    response = Response(
        200,
        headers=Headers({"date": "Mon, 01 Jan 2024 00:00:00 GMT", "cache-control": "max-age=60, s-maxage=10"}),
    )

    assert response.max_age == 10
    assert not response.is_fresh()


@travel(datetime(2024, 1, 1, tzinfo=timezone.utc), tick=False)
def test_response_expires_freshness():
    response = Response(
        200,
        headers=Headers({"date": "Mon, 01 Jan 2024 00:00:00 GMT", "expires": "Mon, 01 Jan 2024 01:00:00 GMT"}),
    )

    assert response.max_age == 3600
    assert response.is_fresh()


def test_response_without_lifetime_is_not_fresh():
    response = Response(200, headers=Headers({"content-type": "text/plain"}))

    assert response.ttl is None
    assert not response.is_fresh()


def test_age_header_wins_over_date():
    response = Response(200, headers=Headers({"age": "50", "cache-control": "max-age=60"}))

    assert response.age == 50
    assert response.ttl == 10


def test_expire_makes_fresh_response_stale():
    response = Response(200, headers=Headers({"cache-control": "max-age=60"}))
    assert response.is_fresh()

    response.expire()

    assert response.headers["age"] == "60"
    assert not response.is_fresh()


def test_expire_leaves_stale_response_alone():
    response = Response(200, headers=Headers({"cache-control": "max-age=60", "age": "100"}))

    response.expire()

    assert response.headers["age"] == "100"


def test_missing_date_is_set_on_first_access():
    response = Response(200, headers=Headers({"cache-control": "max-age=60"}))

    with travel(datetime(2024, 1, 1, tzinfo=timezone.utc), tick=False):
        assert response.is_fresh()
    assert response.headers["date"] == "Mon, 01 Jan 2024 00:00:00 GMT"

    with travel(datetime(2024, 1, 1, 0, 1, 30, tzinfo=timezone.utc), tick=False):
        assert response.age == 90
        assert not response.is_fresh()
