from unittest.mock import patch

from selfgate.store.shortlinks import ShortLinkResolver


def test_shorten_then_resolve():
    links = ShortLinkResolver("https://verify.example.com/")
    long_url = "https://redirect.self.xyz?selfApp=%7B%22version%22%3A2%7D"
    short = links.shorten(long_url)

    assert short.startswith("https://verify.example.com/v/")
    code = short.rsplit("/", 1)[-1]
    assert len(code) == 8
    assert links.resolve(code) == long_url


def test_resolve_unknown_code():
    assert ShortLinkResolver("https://x").resolve("deadbeef") is None


def test_collision_regenerates():
    links = ShortLinkResolver("https://x")
    with patch("selfgate.store.shortlinks.secrets.token_hex", side_effect=["aaaaaaaa", "aaaaaaaa", "bbbbbbbb"]):
        first = links.create("https://one")
        second = links.create("https://two")
    assert first.code == "aaaaaaaa"
    assert second.code == "bbbbbbbb"
    assert links.resolve("aaaaaaaa") == "https://one"
    assert links.resolve("bbbbbbbb") == "https://two"
    assert len(links) == 2


def test_shorten_logs_creation():
    links = ShortLinkResolver("https://x")
    with patch("selfgate.store.shortlinks.log") as mock_log:
        links.shorten("https://long")
    assert mock_log.call_args.args[0] == "shorturl.created"
    assert mock_log.call_args.kwargs["longUrlLength"] == len("https://long")
