# Overview: Indian PIN code -> city/state lookup against the public postal API.

from __future__ import annotations

import re
from dataclasses import dataclass

import httpx
from flask import current_app


PINCODE_RE = re.compile(r"^\d{6}$")


@dataclass(frozen=True)
class PostalLocation:
    pincode: str
    city: str
    state: str

    def to_dict(self) -> dict:
        return {"pincode": self.pincode, "city": self.city, "state": self.state}


def _pick_city(post_office: dict) -> str:
    for key in ("District", "Block", "Division", "Name"):
        value = post_office.get(key)
        if value and value != "NA":
            return value
    return ""


def parse_postal_response(pincode: str, payload) -> PostalLocation | None:
    """
    The API answers a one-element list:
    [{"Status": "Success", "PostOffice": [{"District": ..., "State": ...}, ...]}]
    """
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
        return None
    entry = payload[0]
    if entry.get("Status") != "Success":
        return None
    offices = entry.get("PostOffice") or []
    if not offices or not isinstance(offices[0], dict):
        return None

    office = offices[0]
    city = _pick_city(office)
    state = office.get("State") or ""
    if not city and not state:
        return None
    return PostalLocation(pincode=pincode, city=city, state=state)


def lookup_pincode(pincode: str, client: httpx.Client | None = None) -> PostalLocation | None:
    """
    Resolve a PIN code to city/state.

    Returns None without a network call unless pincode is exactly 6 digits.
    Network and format failures are logged and return None.
    """
    pincode = (pincode or "").strip()
    if not PINCODE_RE.match(pincode):
        return None

    url = current_app.config["POSTAL_LOOKUP_URL"].format(pincode=pincode)
    timeout = current_app.config.get("POSTAL_LOOKUP_TIMEOUT_SECONDS", 8)

    try:
        if client is not None:
            response = client.get(url, timeout=timeout)
        else:
            with httpx.Client(timeout=timeout) as http:
                response = http.get(url)
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, ValueError) as e:
        current_app.logger.warning("PIN code lookup failed for %s: %s", pincode, e)
        return None

    location = parse_postal_response(pincode, payload)
    if location is None:
        current_app.logger.warning("PIN code lookup returned no usable data for %s", pincode)
    return location
