from urlfixer.config import ConfigContext
from urlfixer.filters import MULTISITE_FILTERS, URL_FILTERS, FilterRegistry, register_filters
from urlfixer.rewrite import RewriteEngine


def make_engine():
    return RewriteEngine(
        ConfigContext(
            storage_url="https://store.example.com",
            storage_bucket="media",
            uploads_base_url="http://localhost:81/app/uploads/sites/3",
            subdomain_suffix="tenant3",
            base_domain_with_port="example.com:8080",
            scheme="https",
            port="81",
            tenant_id="3",
        )
    )


def test_registry_priority_then_insertion_order():
    registry = FilterRegistry()
    registry.add_filter("hook", lambda v: v + "b")
    registry.add_filter("hook", lambda v: v + "a", priority=5)
    registry.add_filter("hook", lambda v: v + "c")
    assert registry.apply_filters("hook", "") == "abc"


def test_unknown_hook_returns_value():
    assert FilterRegistry().apply_filters("nothing", "x") == "x"
    assert not FilterRegistry().has_filter("nothing")


def test_register_single_site():
    registry = FilterRegistry()
    hooks = register_filters(make_engine(), registry)
    assert hooks == list(URL_FILTERS)
    assert not any(registry.has_filter(h) for h in MULTISITE_FILTERS)


def test_register_multisite():
    registry = FilterRegistry()
    register_filters(make_engine(), registry, multisite=True)
    assert set(registry.hooks()) == set(URL_FILTERS) | set(MULTISITE_FILTERS)
    assert registry.apply_filters("option_home", "http://blog.oldsite.com/") == "https://blog.tenant3.example.com:8080/"


def test_srcset_hook_keeps_shape():
    registry = FilterRegistry()
    register_filters(make_engine(), registry)
    sources = [
        "http://localhost:81/app/uploads/sites/3/2024/11/photo-300x200.jpg",
        "http://localhost:81/app/uploads/sites/3/2024/11/photo.jpg",
    ]
    assert registry.apply_filters("wp_calculate_image_srcset", sources) == [
        "https://store.example.com/media/sites/3/2024/11/photo-300x200.jpg",
        "https://store.example.com/media/sites/3/2024/11/photo.jpg",
    ]
