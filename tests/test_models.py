import pytest

from aironin_browse.errors import PreconditionError
from aironin_browse.models import ConnectionDescriptor, ConnectionMode, Point, ScrollDirection, Size


def test_point_parse_recovers_formatted_values() -> None:
    for point in (Point(0, 0), Point(100, 100), Point(1919, 7)):
        assert Point.parse(str(point)) == point


def test_point_parse_tolerates_whitespace() -> None:
    assert Point.parse(" 12 ,  34 ") == Point(12, 34)


@pytest.mark.parametrize("value", ["0,600", "800,0", "-5,5", "800x600", "800"])
def test_size_parse_requires_two_positive_integers(value: str) -> None:
    with pytest.raises(PreconditionError):
        Size.parse(value)


def test_size_parse_accepts_valid_size() -> None:
    assert Size.parse("1280,720") == Size(1280, 720)


def test_non_string_input_is_rejected() -> None:
    with pytest.raises(PreconditionError):
        Point.parse(None)  # type: ignore[arg-type]


def test_scroll_direction_parse() -> None:
    assert ScrollDirection.parse("DOWN") is ScrollDirection.DOWN
    assert ScrollDirection.parse(" up ") is ScrollDirection.UP
    with pytest.raises(PreconditionError):
        ScrollDirection.parse("sideways")


def test_local_descriptor_has_no_endpoint() -> None:
    descriptor = ConnectionDescriptor.local()

    assert descriptor.mode is ConnectionMode.LOCAL
    assert descriptor.endpoint is None


def test_remote_descriptor_prefers_websocket_endpoint() -> None:
    descriptor = ConnectionDescriptor(
        mode=ConnectionMode.REMOTE,
        host_url="http://localhost:9222",
        websocket_url="ws://localhost:9222/devtools/browser/1",
    )

    assert descriptor.endpoint == "ws://localhost:9222/devtools/browser/1"
    assert ConnectionDescriptor(mode=ConnectionMode.REMOTE, host_url="http://h:1").endpoint == "http://h:1"
