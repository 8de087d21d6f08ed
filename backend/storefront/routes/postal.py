# Overview: PIN code autofill for the checkout form.

from flask import Blueprint

from ..services import postal_service

postal_bp = Blueprint("postal", __name__, url_prefix="/api/postal")


@postal_bp.get("/<pincode>")
def lookup(pincode: str):
    """200 with city/state, 400 for a malformed PIN, 404 when nothing was found."""
    if not postal_service.PINCODE_RE.match(pincode or ""):
        return {"error": "PIN code must be exactly 6 digits"}, 400

    location = postal_service.lookup_pincode(pincode)
    if location is None:
        return {"error": "PIN code not found"}, 404
    return location.to_dict()
