"""
Client SDK tests.

The storefront API is replaced by an httpx MockTransport so these run
without a server.

Verifies:
- Cached-user tiers (memory -> local file -> cookie) and promotion
- Versioned writes: a stale background write loses
- Login refinement, and logout winning over an in-flight refinement
- Session revalidation interval, timeout fallback and server-side logout
- Cart token capture and the PIN code debouncer
"""

import json
import threading

import httpx
import pytest

from storefront.client import (
    CART_TOKEN_HEADER,
    USER_CACHE_COOKIE_NAME,
    PincodeDebouncer,
    StaleWriteError,
    StorefrontAPIError,
    StorefrontClient,
    UserSessionStore,
    decode_user_cookie,
    encode_user_cookie,
)


BASIC_USER = {"id": 7, "email": "asha@example.com", "first_name": "User", "last_name": "",
              "role": "customer", "permissions": ["read:products"]}
FULL_USER = dict(BASIC_USER, first_name="Asha", last_name="Verma")


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def make_client(routes, **kwargs):
    """routes: {(method, path): handler(request) -> httpx.Response}"""
    calls = []

    def dispatch(request):
        calls.append((request.method, request.url.path))
        handler = routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "Not found"})
        return handler(request)

    client = StorefrontClient("http://shop.test", transport=httpx.MockTransport(dispatch), **kwargs)
    return client, calls


def login_ok(request):
    return httpx.Response(200, json={"user": BASIC_USER, "token": "tok-1"})


# =============================================================================
# CACHED USER STORE
# =============================================================================


class TestUserSessionStore:
    def test_write_reaches_every_tier(self, tmp_path):
        path = tmp_path / "user.json"
        store = UserSessionStore(local_path=path)
        store.write(FULL_USER)

        assert store.read() == FULL_USER
        assert json.loads(path.read_text()) == FULL_USER
        assert decode_user_cookie(store.cookies.get(USER_CACHE_COOKIE_NAME)) == FULL_USER

    def test_local_tier_survives_restart(self, tmp_path):
        path = tmp_path / "user.json"
        UserSessionStore(local_path=path).write(FULL_USER)
        assert UserSessionStore(local_path=path).read() == FULL_USER

    def test_cookie_hit_is_promoted(self, tmp_path):
        path = tmp_path / "user.json"
        cookies = httpx.Cookies()
        cookies.set(USER_CACHE_COOKIE_NAME, encode_user_cookie(FULL_USER))

        store = UserSessionStore(local_path=path, cookies=cookies)
        assert store.read() == FULL_USER
        assert json.loads(path.read_text()) == FULL_USER

    def test_clear_empties_every_tier(self, tmp_path):
        path = tmp_path / "user.json"
        store = UserSessionStore(local_path=path)
        store.write(FULL_USER)
        store.clear()

        assert store.read() is None
        assert not path.exists()
        assert store.cookies.get(USER_CACHE_COOKIE_NAME) is None

    def test_unreadable_tiers_read_as_empty(self, tmp_path):
        path = tmp_path / "user.json"
        path.write_text("{not json")
        cookies = httpx.Cookies()
        cookies.set(USER_CACHE_COOKIE_NAME, "%%%garbage")
        assert UserSessionStore(local_path=path, cookies=cookies).read() is None

    def test_stale_write_rejected(self):
        store = UserSessionStore()
        version = store.write(BASIC_USER)
        store.clear()

        with pytest.raises(StaleWriteError):
            store.write(FULL_USER, expected_version=version)
        assert store.read() is None

    def test_version_increases_on_every_write(self):
        store = UserSessionStore()
        v1 = store.write(BASIC_USER)
        v2 = store.clear()
        assert v2 == v1 + 1 == store.version


def test_cookie_codec_handles_unicode():
    user = dict(FULL_USER, first_name="एहसास")
    assert decode_user_cookie(encode_user_cookie(user)) == user
    assert decode_user_cookie("") is None


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================


class TestLogin:
    def test_basic_user_then_refined_profile(self):
        client, calls = make_client({
            ("POST", "/api/auth/login"): login_ok,
            ("GET", "/api/auth/profile"): lambda r: httpx.Response(200, json={"user": FULL_USER}),
        })

        assert client.login("asha@example.com", "Password123!") == BASIC_USER
        client.wait_for_refinement(5)

        assert client.current_user == FULL_USER
        assert client.token == "tok-1"
        assert ("GET", "/api/auth/profile") in calls

    def test_failed_refinement_keeps_basic_user(self):
        client, _ = make_client({
            ("POST", "/api/auth/login"): login_ok,
            ("GET", "/api/auth/profile"): lambda r: httpx.Response(500, json={"error": "boom"}),
        })
        client.login("asha@example.com", "Password123!")
        client.wait_for_refinement(5)
        assert client.current_user == BASIC_USER

    def test_bad_credentials_raise(self):
        client, _ = make_client({
            ("POST", "/api/auth/login"): lambda r: httpx.Response(401, json={"error": "Invalid credentials"}),
        })
        with pytest.raises(StorefrontAPIError) as exc:
            client.login("asha@example.com", "nope")
        assert exc.value.status_code == 401
        assert str(exc.value) == "Invalid credentials"
        assert client.current_user is None

    def test_logout_wins_over_inflight_refinement(self):
        started = threading.Event()
        release = threading.Event()

        def slow_profile(request):
            started.set()
            release.wait(5)
            return httpx.Response(200, json={"user": FULL_USER})

        client, calls = make_client({
            ("POST", "/api/auth/login"): login_ok,
            ("GET", "/api/auth/profile"): slow_profile,
            ("POST", "/api/auth/logout"): lambda r: httpx.Response(200, json={"message": "Logout successful"}),
        })

        client.login("asha@example.com", "Password123!")
        assert started.wait(5)
        client.logout()
        release.set()
        client.wait_for_refinement(5)

        assert client.current_user is None
        assert client.token is None
        assert ("POST", "/api/auth/logout") in calls

    def test_logout_clears_even_when_server_unreachable(self):
        def unreachable(request):
            raise httpx.ConnectError("down", request=request)

        client, _ = make_client({("POST", "/api/auth/logout"): unreachable})
        client.token = "tok-1"
        client.store.write(FULL_USER)

        client.logout()
        assert client.current_user is None

    def test_signup_with_confirmation_caches_nothing(self):
        client, _ = make_client({
            ("POST", "/api/auth/signup"): lambda r: httpx.Response(201, json={
                "user": BASIC_USER, "token": None, "confirmation_required": True,
            }),
        })
        data = client.signup("asha@example.com", "Password123!")
        assert data["confirmation_required"] is True
        assert client.current_user is None
        assert client.token is None


# =============================================================================
# SESSION REVALIDATION
# =============================================================================


class TestRefreshAuth:
    def test_interval_throttles_checks(self):
        clock = FakeClock()
        client, calls = make_client(
            {("GET", "/api/auth/session"): lambda r: httpx.Response(200, json={"user": FULL_USER})},
            clock=clock,
        )

        assert client.refresh_auth() == FULL_USER
        clock.now += 100
        client.refresh_auth()
        assert calls.count(("GET", "/api/auth/session")) == 1

        clock.now += 600
        client.refresh_auth()
        assert calls.count(("GET", "/api/auth/session")) == 2

        client.refresh_auth(force=True)
        assert calls.count(("GET", "/api/auth/session")) == 3

    def test_timeout_falls_back_to_cache(self):
        def timeout(request):
            raise httpx.ReadTimeout("slow", request=request)

        client, _ = make_client({("GET", "/api/auth/session"): timeout})
        client.store.write(FULL_USER)
        assert client.refresh_auth(force=True) == FULL_USER

    def test_server_without_session_clears_cache(self):
        client, _ = make_client({("GET", "/api/auth/session"): lambda r: httpx.Response(200, json={"user": None})})
        client.token = "expired"
        client.store.write(FULL_USER)

        assert client.refresh_auth(force=True) is None
        assert client.token is None
        assert client.current_user is None


# =============================================================================
# CART / CHECKOUT
# =============================================================================


class TestCartAndCheckout:
    def test_cart_token_captured_and_resent(self):
        seen = []

        def add(request):
            seen.append(request.headers.get(CART_TOKEN_HEADER))
            return httpx.Response(201, json={"token": "cart-1", "items": []}, headers={CART_TOKEN_HEADER: "cart-1"})

        client, _ = make_client({("POST", "/api/cart/items"): add})
        client.add_to_cart(1, selections={"size": "M"})
        client.add_to_cart(1)

        assert client.cart_token == "cart-1"
        assert seen == [None, "cart-1"]

    def test_guest_checkout_adopts_session(self):
        guest = dict(BASIC_USER, email="guest_x@ehsaasjewellery.com")
        client, _ = make_client({
            ("POST", "/api/checkout"): lambda r: httpx.Response(201, json={
                "order": {"id": 1}, "token": "guest-tok", "user": guest,
            }),
        })
        client.checkout({"full_name": "Asha Verma"})
        assert client.token == "guest-tok"
        assert client.current_user == guest

    def test_api_errors_carry_payload(self):
        client, _ = make_client({
            ("POST", "/api/checkout"): lambda r: httpx.Response(400, json={"error": "Cart is empty", "details": {}}),
        })
        with pytest.raises(StorefrontAPIError) as exc:
            client.checkout({})
        assert exc.value.status_code == 400
        assert exc.value.payload["error"] == "Cart is empty"

    def test_lookup_pincode(self):
        client, calls = make_client({
            ("GET", "/api/postal/302001"): lambda r: httpx.Response(200, json={"city": "Jaipur"}),
        })
        assert client.lookup_pincode("302001") == {"city": "Jaipur"}
        assert client.lookup_pincode("999999") is None
        assert client.lookup_pincode("3020") is None
        assert len(calls) == 2


# =============================================================================
# PIN CODE DEBOUNCE
# =============================================================================


class TestPincodeDebouncer:
    def test_only_last_complete_code_is_looked_up(self):
        done = threading.Event()
        looked_up = []
        results = []

        def lookup(pincode):
            looked_up.append(pincode)
            return {"city": "Jaipur"}

        def on_result(pincode, result):
            results.append((pincode, result))
            done.set()

        debouncer = PincodeDebouncer(lookup, on_result, delay=0.05)
        for partial in ("3", "30", "302", "3020", "30200", "302001"):
            debouncer.submit(partial)

        assert done.wait(2)
        assert looked_up == ["302001"]
        assert results == [("302001", {"city": "Jaipur"})]

    def test_editing_away_cancels_pending_lookup(self):
        fired = threading.Event()
        debouncer = PincodeDebouncer(lambda p: None, lambda p, r: fired.set(), delay=0.05)

        debouncer.submit("302001")
        debouncer.submit("30200")
        assert not fired.wait(0.3)

    def test_cancel(self):
        fired = threading.Event()
        debouncer = PincodeDebouncer(lambda p: None, lambda p, r: fired.set(), delay=0.05)
        debouncer.submit("302001")
        debouncer.cancel()
        assert not fired.wait(0.3)
