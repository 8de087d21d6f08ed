# Overview: Python client SDK for the storefront API with a tiered cached-user store.

# backend/storefront/client.py
"""
Storefront client SDK.

The cached user lives in three tiers:
- memory (fastest, per process)
- a local JSON file (survives restarts)
- the ehsaas_admin_user cookie in the httpx cookie jar (set by the server,
  base64 JSON, 7 days)

Reads go memory -> local -> cookie and promote a lower-tier hit upward.
Every write bumps a version counter; background work captures the version
it started from and loses (StaleWriteError) if anything wrote since.

Outbound timeouts:
- session fetch: 15s
- profile fetch (login refinement): 12s
- sign-up: 30s
"""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx

from .user_cookie import decode_user_cookie, encode_user_cookie

logger = logging.getLogger(__name__)

USER_CACHE_COOKIE_NAME = "ehsaas_admin_user"
CART_TOKEN_HEADER = "X-Cart-Token"

DEFAULT_TIMEOUT = 15.0
SESSION_TIMEOUT = 15.0
PROFILE_TIMEOUT = 12.0
SIGNUP_TIMEOUT = 30.0
AUTH_CHECK_INTERVAL = 600.0
PINCODE_DEBOUNCE_SECONDS = 0.5

_PINCODE_RE = re.compile(r"^\d{6}$")


class StaleWriteError(RuntimeError):
    """Raised when a writer's expected version is older than the store's."""


class StorefrontAPIError(Exception):
    def __init__(self, message: str, status_code: int, payload: Optional[Dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class UserSessionStore:
    """
    Three-tier cached user with a monotonic version counter.

    write/clear accept an optional expected_version; when given and older
    than the current version the call raises StaleWriteError and changes
    nothing.
    """

    def __init__(
        self,
        local_path: Optional[Path] = None,
        cookies: Optional[httpx.Cookies] = None,
        cookie_name: str = USER_CACHE_COOKIE_NAME,
    ):
        self.local_path = Path(local_path) if local_path else None
        self.cookies = cookies if cookies is not None else httpx.Cookies()
        self.cookie_name = cookie_name
        self._memory: Optional[Dict] = None
        self._version = 0
        self._lock = threading.RLock()

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    # -- tiers ---------------------------------------------------------------

    def _read_local(self) -> Optional[Dict]:
        if not self.local_path or not self.local_path.exists():
            return None
        try:
            data = json.loads(self.local_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Failed to read cached user from %s: %s", self.local_path, e)
            return None
        return data if isinstance(data, dict) else None

    def _write_local(self, user: Optional[Dict]) -> None:
        if not self.local_path:
            return
        try:
            if user is None:
                if self.local_path.exists():
                    self.local_path.unlink()
            else:
                self.local_path.parent.mkdir(parents=True, exist_ok=True)
                self.local_path.write_text(json.dumps(user), encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to cache user to %s: %s", self.local_path, e)

    def _read_cookie(self) -> Optional[Dict]:
        for cookie in self.cookies.jar:
            if cookie.name == self.cookie_name and cookie.value:
                return decode_user_cookie(cookie.value)
        return None

    def _write_cookie(self, user: Optional[Dict]) -> None:
        # Drop every copy first; the server and the SDK may have set it under different domains
        for cookie in list(self.cookies.jar):
            if cookie.name == self.cookie_name:
                self.cookies.delete(cookie.name, domain=cookie.domain, path=cookie.path)
        if user is not None:
            self.cookies.set(self.cookie_name, encode_user_cookie(user), path="/")

    # -- public API ----------------------------------------------------------

    def read(self) -> Optional[Dict]:
        with self._lock:
            if self._memory is not None:
                return self._memory

            user = self._read_local()
            if user is not None:
                self._memory = user
                return user

            user = self._read_cookie()
            if user is not None:
                # Promote so later reads skip the cookie decode
                self._memory = user
                self._write_local(user)
            return user

    def write(self, user: Dict, expected_version: Optional[int] = None) -> int:
        with self._lock:
            if expected_version is not None and expected_version != self._version:
                raise StaleWriteError(
                    f"cached user changed (expected v{expected_version}, now v{self._version})"
                )
            self._memory = dict(user)
            self._write_local(self._memory)
            self._write_cookie(self._memory)
            self._version += 1
            return self._version

    def clear(self, expected_version: Optional[int] = None) -> int:
        with self._lock:
            if expected_version is not None and expected_version != self._version:
                raise StaleWriteError(
                    f"cached user changed (expected v{expected_version}, now v{self._version})"
                )
            self._memory = None
            self._write_local(None)
            self._write_cookie(None)
            self._version += 1
            return self._version


class CancellationToken:
    """Once cancelled, continuations that check it become no-ops."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class StorefrontClient:
    """
    HTTP client for the storefront API.

    Keeps the Bearer token, the cart token and the cached user. Login
    returns the basic user immediately and refines it from /api/auth/profile
    on a daemon thread.
    """

    def __init__(
        self,
        base_url: str,
        *,
        store: Optional[UserSessionStore] = None,
        local_cache_path: Optional[Path] = None,
        transport: Optional[httpx.BaseTransport] = None,
        auth_check_interval: float = AUTH_CHECK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.http = httpx.Client(base_url=base_url.rstrip("/"), transport=transport, timeout=DEFAULT_TIMEOUT)
        self.store = store or UserSessionStore(local_path=local_cache_path, cookies=self.http.cookies)
        self.token: Optional[str] = None
        self.cart_token: Optional[str] = None
        self.auth_check_interval = auth_check_interval
        self._clock = clock
        self._last_auth_check: Optional[float] = None
        self._refinement: Optional[CancellationToken] = None
        self._refinement_thread: Optional[threading.Thread] = None

    def close(self) -> None:
        self._cancel_refinement()
        self.http.close()

    def __enter__(self) -> "StorefrontClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def current_user(self) -> Optional[Dict]:
        return self.store.read()

    # -- plumbing ------------------------------------------------------------

    def _headers(self, extra: Optional[Dict] = None) -> Dict:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.cart_token:
            headers[CART_TOKEN_HEADER] = self.cart_token
        if extra:
            headers.update(extra)
        return headers

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = self.http.request(method, path, headers=self._headers(), **kwargs)
        cart_token = response.headers.get(CART_TOKEN_HEADER)
        if cart_token:
            self.cart_token = cart_token
        return response

    @staticmethod
    def _json_or_raise(response: httpx.Response) -> Any:
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code >= 400:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise StorefrontAPIError(message or f"HTTP {response.status_code}", response.status_code, payload)
        return payload

    def _cancel_refinement(self) -> None:
        if self._refinement is not None:
            self._refinement.cancel()
            self._refinement = None

    # -- auth ----------------------------------------------------------------

    def login(self, email: str, password: str) -> Dict:
        """Sign in; returns the basic user and starts background profile refinement."""
        data = self._json_or_raise(self._request("POST", "/api/auth/login", json={"email": email, "password": password}))
        self.token = data.get("token")
        basic_user = data["user"]

        self._cancel_refinement()
        version = self.store.write(basic_user)
        self._last_auth_check = self._clock()

        cancel = CancellationToken()
        self._refinement = cancel
        thread = threading.Thread(
            target=self._refine_profile, args=(cancel, version, self.token), daemon=True
        )
        self._refinement_thread = thread
        thread.start()
        return basic_user

    def _refine_profile(self, cancel: CancellationToken, version: int, token: Optional[str]) -> None:
        try:
            response = self.http.get(
                "/api/auth/profile",
                headers={"Authorization": f"Bearer {token}"},
                timeout=PROFILE_TIMEOUT,
            )
            response.raise_for_status()
            refined = response.json()["user"]
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning("Profile refinement failed, keeping basic user: %s", e)
            return

        if cancel.cancelled:
            logger.debug("Profile refinement cancelled, discarding result")
            return
        try:
            self.store.write(refined, expected_version=version)
        except StaleWriteError as e:
            logger.debug("Discarding stale profile refinement: %s", e)

    def wait_for_refinement(self, timeout: Optional[float] = None) -> None:
        thread = self._refinement_thread
        if thread is not None:
            thread.join(timeout)

    def signup(self, email: str, password: str, first_name: str = "User", last_name: str = "") -> Dict:
        """
        Register a customer account.

        When confirmation_required is true the response carries no token and
        nothing is cached.
        """
        data = self._json_or_raise(self._request(
            "POST",
            "/api/auth/signup",
            json={"email": email, "password": password, "first_name": first_name, "last_name": last_name},
            timeout=SIGNUP_TIMEOUT,
        ))
        if data.get("token"):
            self._cancel_refinement()
            self.token = data["token"]
            self.store.write(data["user"])
            self._last_auth_check = self._clock()
        return data

    def logout(self) -> None:
        self._cancel_refinement()
        try:
            if self.token:
                self._request("POST", "/api/auth/logout")
        except httpx.HTTPError as e:
            logger.warning("Logout request failed, clearing local state anyway: %s", e)
        finally:
            self.token = None
            self.store.clear()

    def refresh_auth(self, force: bool = False) -> Optional[Dict]:
        """
        Revalidate the cached user against /api/auth/session.

        Skipped (returns the cached user) when the last check was less than
        auth_check_interval seconds ago, unless force is set. A timeout or
        network error also falls back to the cached user.
        """
        now = self._clock()
        if not force and self._last_auth_check is not None and now - self._last_auth_check < self.auth_check_interval:
            logger.debug("Skipping auth check, last check was %ds ago", int(now - self._last_auth_check))
            return self.store.read()

        version = self.store.version
        try:
            response = self._request("GET", "/api/auth/session", timeout=SESSION_TIMEOUT)
            response.raise_for_status()
            user = response.json().get("user")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("Session check failed, using cached user: %s", e)
            return self.store.read()
        finally:
            self._last_auth_check = now

        try:
            if user:
                self.store.write(user, expected_version=version)
            else:
                self.token = None
                self.store.clear(expected_version=version)
        except StaleWriteError as e:
            logger.debug("Session check overtaken by a newer write: %s", e)
        return self.store.read()

    # -- catalog -------------------------------------------------------------

    def get_product(self, product_id: int) -> Dict:
        return self._json_or_raise(self._request("GET", f"/api/products/{product_id}"))

    def get_variants(self, product_id: int) -> Dict:
        return self._json_or_raise(self._request("GET", f"/api/products/{product_id}/variants"))

    def quote(self, product_id: int, **selection) -> Dict:
        """POST /quote with selections / option_name+value / variant_id."""
        return self._json_or_raise(self._request("POST", f"/api/products/{product_id}/quote", json=selection))

    # -- cart ----------------------------------------------------------------

    def get_cart(self) -> Dict:
        return self._json_or_raise(self._request("GET", "/api/cart"))

    def add_to_cart(
        self,
        product_id: int,
        quantity: int = 1,
        variant_id: Optional[int] = None,
        selections: Optional[Dict[str, str]] = None,
    ) -> Dict:
        body: Dict[str, Any] = {"product_id": product_id, "quantity": quantity}
        if variant_id is not None:
            body["variant_id"] = variant_id
        if selections:
            body["selections"] = selections
        return self._json_or_raise(self._request("POST", "/api/cart/items", json=body))

    def update_cart_item(self, key: str, quantity: int) -> Dict:
        return self._json_or_raise(self._request("PATCH", f"/api/cart/items/{key}", json={"quantity": quantity}))

    def remove_cart_item(self, key: str) -> Dict:
        return self._json_or_raise(self._request("DELETE", f"/api/cart/items/{key}"))

    def clear_cart(self) -> Dict:
        return self._json_or_raise(self._request("DELETE", "/api/cart"))

    # -- checkout / orders ---------------------------------------------------

    def checkout(self, shipping: Dict, payment_method: str = "cod") -> Dict:
        """
        Place the order for the current cart.

        Anonymous checkouts come back with a guest session token, which is
        adopted along with the guest user.
        """
        data = self._json_or_raise(self._request(
            "POST", "/api/checkout", json={"shipping": shipping, "payment_method": payment_method}
        ))
        if data.get("token") and not self.token:
            self.token = data["token"]
            if data.get("user"):
                self.store.write(data["user"])
        return data

    def my_orders(self) -> Dict:
        return self._json_or_raise(self._request("GET", "/api/orders/mine"))

    def get_order(self, order_id: int) -> Dict:
        return self._json_or_raise(self._request("GET", f"/api/orders/{order_id}"))

    def lookup_pincode(self, pincode: str) -> Optional[Dict]:
        """City/state for a PIN code, or None when it is malformed, unknown or unreachable."""
        if not _PINCODE_RE.match(pincode or ""):
            return None
        try:
            response = self._request("GET", f"/api/postal/{pincode}")
        except httpx.HTTPError as e:
            logger.warning("PIN code lookup failed for %s: %s", pincode, e)
            return None
        if response.status_code != 200:
            return None
        return response.json()


class PincodeDebouncer:
    """
    Runs a PIN lookup once input has been stable for `delay` seconds.

    Each submit cancels the pending lookup; only complete 6-digit codes are
    looked up.
    """

    def __init__(
        self,
        lookup: Callable[[str], Optional[Dict]],
        on_result: Callable[[str, Optional[Dict]], None],
        delay: float = PINCODE_DEBOUNCE_SECONDS,
    ):
        self.lookup = lookup
        self.on_result = on_result
        self.delay = delay
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def submit(self, pincode: str) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if not _PINCODE_RE.match(pincode or ""):
                return
            timer = threading.Timer(self.delay, self._fire, args=(pincode,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self, pincode: str) -> None:
        with self._lock:
            self._timer = None
        self.on_result(pincode, self.lookup(pincode))

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
