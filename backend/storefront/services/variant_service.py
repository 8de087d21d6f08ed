# Overview: Pure variant resolution over a loaded variant catalog; no database access.

"""
Variant Resolution

A product's variants are points in its option space (e.g. size x color).
The storefront keeps a "selection" (option name -> value) and resolves it
to at most one variant:

- An empty selection matches the base variant (the one with no options).
- A non-empty selection matches the variant whose option set has the same
  size and whose every (option, value) pair appears in the selection.
- No match falls back to the base variant and clears the selection, so the
  page never shows a combination that does not exist.

Everything here works on LoadedVariant snapshots so it can run without an
app context.
"""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class VariantImageRef:
    id: int
    url: str
    is_primary: bool = False


@dataclass(frozen=True)
class LoadedVariant:
    """Read-only snapshot of an active variant with its resolved option pairs."""
    id: int
    name: str
    sku: str
    price_paise: int | None
    stock_quantity: int
    options: tuple[tuple[str, str], ...] = ()
    images: tuple[VariantImageRef, ...] = ()
    sort_order: int = 0

    @property
    def is_base(self) -> bool:
        return not self.options

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "price_paise": self.price_paise,
            "stock_quantity": self.stock_quantity,
            "options": [{"option_name": n, "value": v} for n, v in self.options],
            "images": [{"id": i.id, "url": i.url, "is_primary": i.is_primary} for i in self.images],
        }


@dataclass
class VariantCatalog:
    options: list[dict] = field(default_factory=list)
    variants: list[LoadedVariant] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.variants

    def to_dict(self) -> dict:
        return {
            "options": self.options,
            "variants": [v.to_dict() for v in self.variants],
        }


@dataclass(frozen=True)
class VariantResolution:
    variant: LoadedVariant | None
    selections: dict[str, str]


def find_base_variant(variants: list[LoadedVariant]) -> LoadedVariant | None:
    for variant in variants:
        if variant.is_base:
            return variant
    return None


def _matches(variant: LoadedVariant, selections: dict[str, str]) -> bool:
    if len(variant.options) != len(selections):
        return False
    return all(selections.get(name) == value for name, value in variant.options)


def resolve_variant(variants: list[LoadedVariant], selections: dict[str, str]) -> VariantResolution:
    """
    Resolve a selection to a variant.

    If two variants share an option set, the first in list order wins.
    """
    selections = dict(selections or {})

    if not selections:
        return VariantResolution(variant=find_base_variant(variants), selections={})

    for variant in variants:
        if _matches(variant, selections):
            return VariantResolution(variant=variant, selections=selections)

    # Unknown combination: reset to the base variant (or nothing)
    return VariantResolution(variant=find_base_variant(variants), selections={})


def change_option(
    variants: list[LoadedVariant],
    current_selections: dict[str, str],
    option_name: str,
    value: str,
) -> VariantResolution:
    merged = dict(current_selections or {})
    merged[option_name] = value
    return resolve_variant(variants, merged)


def select_variant(variant: LoadedVariant) -> dict[str, str]:
    """Selections that reproduce `variant` (empty for the base variant)."""
    return {name: value for name, value in variant.options}


def default_resolution(variants: list[LoadedVariant]) -> VariantResolution:
    """Initial page state: the base variant, else the first variant, else nothing."""
    if not variants:
        return VariantResolution(variant=None, selections={})
    variant = find_base_variant(variants) or variants[0]
    return VariantResolution(variant=variant, selections=select_variant(variant))


def build_gallery(
    product_images: list[dict],
    variant: LoadedVariant | None,
    placeholder: str,
) -> list[str]:
    """
    Image URLs shown on the product page.

    Product images come first (videos excluded); a placeholder stands in when
    there are none. The variant's own images are appended when not already
    present.
    """
    gallery = [
        img["image_url"]
        for img in product_images
        if img.get("media_type", "image") != "video" and img.get("image_url")
    ]
    if not gallery:
        gallery = [placeholder]

    if variant is not None:
        for image in variant.images:
            if image.url not in gallery:
                gallery.append(image.url)

    return gallery


def gallery_index_for(variant: LoadedVariant | None, gallery: list[str], current_index: int) -> int:
    if variant is None or not variant.images:
        return current_index

    target = next((img for img in variant.images if img.is_primary), variant.images[0])
    try:
        return gallery.index(target.url)
    except ValueError:
        return current_index
