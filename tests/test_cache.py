from urlfixer import build_engine
from urlfixer.cache import RewriteCache


def test_point_lookup_and_insert():
    cache = RewriteCache()
    assert cache.get("http://a.com/") is None
    assert cache.set("http://a.com/", "https://b.com/") == "https://b.com/"
    assert cache.get("http://a.com/") == "https://b.com/"
    assert "http://a.com/" in cache
    assert len(cache) == 1
    assert list(cache) == ["http://a.com/"]
    cache.clear()
    assert len(cache) == 0


def test_no_eviction():
    cache = RewriteCache()
    for i in range(5000):
        cache.set(f"http://a.com/{i}", f"http://b.com/{i}")
    assert len(cache) == 5000
    assert cache.get("http://a.com/0") == "http://b.com/0"


def test_shared_cache_between_engines(tmp_path):
    rules = tmp_path / "overrides.txt"
    rules.write_text("oldsite.com/*\n")
    env = {"NGINX_PORT": "81"}
    cache = RewriteCache()
    first = build_engine(env, str(rules), cache=cache)
    second = build_engine(env, str(rules), cache=cache)
    assert first.rewrite("http://localhost/a") == "http://localhost:81/a"
    assert second.cache.get("http://localhost/a") == "http://localhost:81/a"
    assert second.rewrite("http://oldsite.com/x") == "http://oldsite.com/x"
