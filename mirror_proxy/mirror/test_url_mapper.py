from mirror_proxy.mirror.url_mapper import (
    get_inbound_url,
    get_mirror_host,
    get_target_url,
    map_upstream_url,
)
from mirror_proxy.utils_tests.upstream_mock import UPSTREAM_ORIGIN, make_request


class TestMapUpstreamUrl:
    def test_root_path(self):
        assert map_upstream_url(UPSTREAM_ORIGIN, "/", "") == f"{UPSTREAM_ORIGIN}/"

    def test_path_and_query(self):
        assert (
            map_upstream_url(UPSTREAM_ORIGIN, "/api/data", "foo=bar")
            == f"{UPSTREAM_ORIGIN}/api/data?foo=bar"
        )

    def test_missing_leading_slash(self):
        assert map_upstream_url(UPSTREAM_ORIGIN, "blog", "") == f"{UPSTREAM_ORIGIN}/blog"


class TestGetTargetUrl:
    def test_preserves_path_and_query(self):
        request = make_request("/api/data", query="foo=bar")
        assert get_target_url(request, UPSTREAM_ORIGIN) == (
            "https://ropean.github.io/api/data?foo=bar"
        )

    def test_percent_encoding_is_kept_byte_for_byte(self):
        request = make_request("/a%2Fb/c%20d", query="q=hello%20world&tag=foo%2Fbar")
        assert get_target_url(request, UPSTREAM_ORIGIN) == (
            f"{UPSTREAM_ORIGIN}/a%2Fb/c%20d?q=hello%20world&tag=foo%2Fbar"
        )

    def test_multiple_slashes_in_path(self):
        request = make_request("//api///users//")
        assert get_target_url(request, UPSTREAM_ORIGIN) == f"{UPSTREAM_ORIGIN}//api///users//"

    def test_query_with_empty_values(self):
        request = make_request("/search", query="q=&empty=&valid=value")
        assert get_target_url(request, UPSTREAM_ORIGIN).endswith(
            "/search?q=&empty=&valid=value"
        )

    def test_falls_back_to_decoded_path_without_raw_path(self):
        request = make_request("/docs/")
        del request.scope["raw_path"]
        assert get_target_url(request, UPSTREAM_ORIGIN) == f"{UPSTREAM_ORIGIN}/docs/"


class TestInboundUrl:
    def test_mirror_host_comes_from_host_header(self):
        request = make_request("/", host="mirror.example.com:8443")
        assert get_mirror_host(request) == "mirror.example.com:8443"

    def test_inbound_url(self):
        request = make_request("/posts/", query="page=2", scheme="http", host="localhost:8000")
        assert get_inbound_url(request) == "http://localhost:8000/posts/?page=2"
