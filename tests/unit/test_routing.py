"""
Unit tests for the rewrite engine and the redirect resolver.
"""

import logging

import pytest

from servehandler.config import RedirectRule, RewriteRule, ServeConfig
from servehandler.routing.redirects import Redirect, encode_location, resolve_redirect
from servehandler.routing.rewrites import MAX_REWRITE_PASSES, apply_rewrites


class TestApplyRewrites:
    """Tests for apply_rewrites()."""

    def test_no_rules(self):
        assert apply_rewrites("/x", []) == "/x"
        assert apply_rewrites("/x", None) == "/x"

    def test_plain_mapping_rules(self):
        assert apply_rewrites("/a", [{"source": "/a", "destination": "/b"}]) == "/b"

    def test_first_match_wins(self):
        rules = [RewriteRule("/a", "/first"), RewriteRule("/a", "/second")]
        assert apply_rewrites("/a", rules) == "/first"

    def test_rules_chain(self):
        """The list is reapplied to the rewritten path."""
        rules = [
            RewriteRule("/blog/:slug", "/posts/:slug.html"),
            RewriteRule("/posts/**", "/index.html"),
        ]
        assert apply_rewrites("/blog/hello", rules) == "/index.html"

    def test_self_mapping_stops(self):
        rules = [RewriteRule("/**", "/index.html")]
        assert apply_rewrites("/a/b", rules) == "/index.html"

    def test_destination_without_slash(self):
        rules = [RewriteRule("/app/**", "index.html")]
        assert apply_rewrites("/app/x", rules) == "/index.html"

    def test_cycle_is_bounded(self, caplog):
        """A cycle stops after MAX_REWRITE_PASSES with a warning."""
        rules = [RewriteRule("/a", "/b"), RewriteRule("/b", "/a")]

        with caplog.at_level(logging.WARNING, logger="servehandler"):
            result = apply_rewrites("/a", rules)

        assert result == ("/a" if MAX_REWRITE_PASSES % 2 == 0 else "/b")
        assert "did not settle" in caplog.text


class TestResolveRedirect:
    """Tests for resolve_redirect()."""

    def test_nothing_configured(self):
        config = ServeConfig(clean_urls=False)
        assert resolve_redirect("/about.html", config, clean_url=False) is None

    def test_clean_url_strip(self):
        config = ServeConfig()
        redirect = resolve_redirect("/about.html", config, clean_url=True)
        assert redirect == Redirect("/about", 301)

    @pytest.mark.parametrize("path,target", [
        ("/docs/index.html", "/docs/index"),
        ("/docs/index.htm", "/docs/index"),
        ("/docs/index", "/docs"),
        ("/index.html", "/index"),
        ("/index", "/"),
    ])
    def test_clean_url_index(self, path, target):
        redirect = resolve_redirect(path, ServeConfig(), clean_url=True)
        assert redirect.target == target

    def test_clean_url_not_applied(self):
        assert resolve_redirect("/about", ServeConfig(), clean_url=True) is None

    def test_trailing_slash_added(self):
        config = ServeConfig(trailing_slash=True)
        assert resolve_redirect("/docs", config, clean_url=False).target == "/docs/"

    def test_trailing_slash_not_added_to_files(self):
        config = ServeConfig(trailing_slash=True)
        assert resolve_redirect("/docs.txt", config, clean_url=False) is None
        assert resolve_redirect("/.well-known", config, clean_url=False) is None
        assert resolve_redirect("/docs/", config, clean_url=False) is None

    def test_trailing_slash_removed(self):
        config = ServeConfig(trailing_slash=False)
        assert resolve_redirect("/docs/", config, clean_url=False).target == "/docs"
        assert resolve_redirect("/", config, clean_url=False) is None

    def test_slash_runs_collapse(self):
        config = ServeConfig(trailing_slash=False)
        assert resolve_redirect("/a//b", config, clean_url=False).target == "/a/b"

        config = ServeConfig(trailing_slash=True)
        assert resolve_redirect("/a//b/", config, clean_url=False).target == "/a/b/"

    def test_collapse_redirects_alone(self):
        # The trailing slash is left for the next request
        config = ServeConfig(trailing_slash=False)
        assert resolve_redirect("/a//b/", config, clean_url=False).target == "/a/b/"
        assert resolve_redirect("/a/b/", config, clean_url=False).target == "/a/b"

        config = ServeConfig(trailing_slash=True)
        assert resolve_redirect("/a//b", config, clean_url=False).target == "/a/b"
        assert resolve_redirect("/a/b", config, clean_url=False).target == "/a/b/"

    def test_clean_and_trailing_slash_in_one_hop(self):
        config = ServeConfig(trailing_slash=True)
        assert resolve_redirect("/about.html", config, clean_url=True).target == "/about/"

    def test_never_protocol_relative(self):
        redirect = resolve_redirect("//evil.com/page.html", ServeConfig(), clean_url=True)
        assert redirect.target == "/evil.com/page"

    def test_rule_with_params(self):
        config = ServeConfig(redirects=[RedirectRule("/old/:id", "/new/:id")])
        assert resolve_redirect("/old/5", config, clean_url=False) == Redirect("/new/5", 301)

    def test_rule_status(self):
        config = ServeConfig(redirects=[RedirectRule("/old", "/new", status_code=302)])
        assert resolve_redirect("/old", config, clean_url=False).status_code == 302

    def test_rule_appended_after_construction(self):
        config = ServeConfig()
        config.redirects.append({"source": "/old", "destination": "/new", "type": 307})
        assert resolve_redirect("/old", config, clean_url=False) == Redirect("/new", 307)

    def test_builtin_steps_come_first(self):
        config = ServeConfig(redirects=[RedirectRule("/about.html", "/elsewhere")])
        assert resolve_redirect("/about.html", config, clean_url=True).target == "/about"


class TestLocation:
    """Tests for Location header encoding."""

    def test_encode_location(self):
        assert encode_location("/a b/ü?x=1#top") == "/a%20b/%C3%BC?x=1#top"

    def test_reserved_characters_kept(self):
        assert encode_location("https://example.com:8443/a;b,c") == "https://example.com:8443/a;b,c"

    def test_raw_location(self):
        assert Redirect("/a b").location == "/a%20b"
        assert Redirect("/a b", raw=True).location == "/a b"
