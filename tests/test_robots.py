import pytest

from crawlkit.robots import Robots, parse_robots, robots_match


ORIGIN = "https://a.test"


def robots_for(content: str) -> Robots:
    robots = Robots()
    robots.parse(ORIGIN, content)
    return robots


def allowed(robots: Robots, path: str, agent: str = "AnyBot/1.0") -> bool:
    return robots.is_allowed(ORIGIN + path, agent)


def test_private_and_public_paths():
    robots = robots_for("User-agent: *\nDisallow: /private/\nAllow: /public/\n")
    assert not allowed(robots, "/private/x")
    assert allowed(robots, "/public/x")
    assert allowed(robots, "/other")


def test_agent_specific_group_beats_wildcard():
    robots = robots_for(
        "User-agent: Googlebot\n"
        "Disallow: /admin/\n"
        "\n"
        "User-agent: *\n"
        "Disallow: /\n"
        "Allow: /public/\n"
    )
    assert not allowed(robots, "/admin/", "Googlebot/2.1")
    assert allowed(robots, "/public/", "Googlebot/2.1")
    assert allowed(robots, "/anything", "googlebot")
    assert not allowed(robots, "/anything", "OtherBot")
    assert allowed(robots, "/public/page", "OtherBot")


def test_longest_agent_name_wins():
    robots = robots_for(
        "User-agent: Bot\nDisallow: /a\n\n"
        "User-agent: BotExtra\nDisallow: /b\n"
    )
    assert allowed(robots, "/a", "BotExtra/1.0")
    assert not allowed(robots, "/b", "BotExtra/1.0")
    assert not allowed(robots, "/a", "Bot/1.0")


def test_wildcards_and_end_anchor():
    robots = robots_for(
        "User-agent: *\n"
        "Disallow: /*.pdf$\n"
        "Disallow: /temp/*\n"
        "Allow: /temp/public/*\n"
    )
    assert not allowed(robots, "/document.pdf")
    assert not allowed(robots, "/docs/report.pdf")
    assert allowed(robots, "/document.pdf.html")
    assert not allowed(robots, "/temp/secret.txt")
    assert allowed(robots, "/temp/public/file.txt")


@pytest.mark.parametrize("content", [
    "User-agent: *\nAllow: /a/b\nDisallow: /a\n",
    "User-agent: *\nDisallow: /a\nAllow: /a/b\n",
])
def test_longest_pattern_wins_regardless_of_order(content):
    robots = robots_for(content)
    assert allowed(robots, "/a/b/c")
    assert not allowed(robots, "/a/c")


def test_equal_length_patterns_prefer_allow():
    robots = robots_for("User-agent: *\nDisallow: /x\nAllow: /x\n")
    assert allowed(robots, "/x/y")


def test_empty_disallow_allows_everything():
    robots = robots_for("User-agent: *\nDisallow:\n")
    assert allowed(robots, "/")
    assert allowed(robots, "/anything")


def test_root_path_used_when_url_has_none():
    robots = robots_for("User-agent: *\nDisallow: /\n")
    assert not robots.is_allowed("https://a.test", "AnyBot")


def test_brace_alternatives():
    robots = robots_for("User-agent: *\nDisallow: /{foo,bar}/\n")
    assert not allowed(robots, "/foo/x")
    assert not allowed(robots, "/bar/x")
    assert allowed(robots, "/baz/x")


def test_comments_sitemaps_and_crawl_delay():
    robots = robots_for(
        "# site rules\n"
        "Sitemap: https://a.test/sitemap.xml\n"
        "User-agent: *   # everyone\n"
        "Crawl-delay: 2.5\n"
        "Disallow: /tmp/ # scratch\n"
        "Crawl-delay: soon\n"
    )
    assert not allowed(robots, "/tmp/x")
    assert robots.crawl_delay(ORIGIN + "/", "AnyBot") == 2.5
    assert robots.sitemaps(ORIGIN + "/") == ["https://a.test/sitemap.xml"]


def test_consecutive_user_agent_lines_open_separate_groups():
    ruleset = parse_robots("User-agent: a\nUser-agent: b\nDisallow: /\n")
    assert [r.user_agent for r in ruleset.rules] == ["a", "b"]
    robots = robots_for("User-agent: a\nUser-agent: b\nDisallow: /\n")
    assert allowed(robots, "/x", "a")
    assert not allowed(robots, "/x", "b")


def test_repeated_agent_groups_are_merged():
    ruleset = parse_robots("User-agent: *\nDisallow: /a\n\nUser-agent: *\nDisallow: /b\n")
    assert len(ruleset.rules) == 1
    assert ruleset.rules[0].disallow == ["/a", "/b"]


def test_lines_before_any_agent_are_ignored():
    robots = robots_for("Disallow: /\nUser-agent: *\nDisallow: /x\n")
    assert allowed(robots, "/y")
    assert not allowed(robots, "/x")


def test_store_is_keyed_by_host_and_first_parse_wins():
    robots = Robots()
    assert not robots.exists("https://a.test")
    robots.parse("https://A.test", "User-agent: *\nDisallow: /\n")
    assert robots.exists("https://a.test")
    assert robots.exists("http://a.test:8080")
    robots.parse("https://a.test", "User-agent: *\nAllow: /\n")
    assert not robots.is_allowed("https://a.test/x", "AnyBot")


def test_unknown_host_and_empty_file_allow_everything():
    robots = Robots()
    assert robots.is_allowed("https://b.test/x", "AnyBot")
    robots.parse("https://b.test", "")
    assert robots.exists("https://b.test")
    assert robots.is_allowed("https://b.test/x", "AnyBot")
    assert robots.crawl_delay("https://b.test/x", "AnyBot") is None
    assert robots.sitemaps("https://c.test/") == []


def test_robots_match_helper():
    assert robots_match("/private", "/private/x")
    assert robots_match("/*.gif$", "/img/a.gif")
    assert not robots_match("/*.gif$", "/img/a.gifs")
    assert not robots_match("", "/anything")
    assert robots_match("/exact$", "/exact")
    assert not robots_match("/exact$", "/exact/more")


def test_anchored_patterns_with_classes_and_braces():
    assert robots_match("/page[0-9]$", "/page5")
    assert not robots_match("/page[0-9]$", "/page55")
    assert robots_match("/{a,b}.html$", "/a.html")
    assert not robots_match("/{a,b}.html$", "/c.html")
    robots = robots_for("User-agent: *\nDisallow: /page[0-9]$\nDisallow: /{a,b}.html$\n")
    assert not allowed(robots, "/page5")
    assert allowed(robots, "/page5/next")
    assert not allowed(robots, "/b.html")
    assert allowed(robots, "/b.html/more")
