"""Inventory consistency manager.

Stock checks and movements for order lines. Every mutating function is meant
to run inside the caller's unit of work (a command handler), so stock moves
commit or roll back together with the order change that caused them.

An order line is a dict with ``product_id``, ``quantity`` and optionally
``variant_id``, ``color_code`` and ``size``. A line is served from a variant
when the product has variants and the line names a colour (or a variant id);
otherwise it is served from the product's flat stock. Checkout refuses lines
that name no variant of a product with variants, since there is no stock to
take them from.
"""

from dataclasses import dataclass, field

import structlog
from protean import atomic_change
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.catalogue.product import Product
from commerce.order.order import Order
from commerce.order.state_machine import CONFIRMED_STATUSES, is_confirmed_status

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Shortfall:
    product_id: str
    product_name: str
    color: str
    size: str | None
    available: int
    requested: int

    def to_dict(self) -> dict:
        return dict(vars(self))


@dataclass(frozen=True)
class StockCheck:
    is_valid: bool
    insufficient_items: list[Shortfall] = field(default_factory=list)


def _load_product(product_id) -> Product | None:
    try:
        return current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError:
        return None


def _resolve_variant(product: Product, line: dict):
    if not product.has_variants:
        return None
    if line.get("variant_id"):
        return product.find_variant(variant_id=line["variant_id"])
    if line.get("color_code"):
        return product.find_variant(color_code=line["color_code"], size=line.get("size"))
    return None


def _uses_variant_stock(product: Product, line: dict) -> bool:
    return product.has_variants and bool(line.get("color_code") or line.get("variant_id"))


def validate_stock_availability(items: list[dict]) -> StockCheck:
    """Check every line against current stock and report all shortfalls.

    Lines drawing on the same stock share it: each line only sees what the
    lines before it left over.
    """
    shortfalls: list[Shortfall] = []
    claimed: dict[tuple, int] = {}

    for line in items:
        requested = int(line["quantity"])
        color = line.get("color_code") or ""
        size = line.get("size")
        product = _load_product(line["product_id"])

        if product is None:
            shortfalls.append(Shortfall(str(line["product_id"]), "Product not found", color, size, 0, requested))
            continue

        if _uses_variant_stock(product, line):
            variant = _resolve_variant(product, line)
            in_stock = variant.stock if variant is not None else 0
            key = (str(product.id), str(variant.id) if variant is not None else (color, size))
        else:
            in_stock = product.stock or 0
            key = (str(product.id), None)

        available = max(0, in_stock - claimed.get(key, 0))
        claimed[key] = claimed.get(key, 0) + requested

        if available < requested:
            shortfalls.append(Shortfall(str(product.id), product.name, color, size, available, requested))

    return StockCheck(is_valid=not shortfalls, insufficient_items=shortfalls)


def _move_stock(items: list[dict], sign: int) -> None:
    repo = current_domain.repository_for(Product)
    touched: dict[str, Product] = {}

    for line in items:
        product_id = str(line["product_id"])
        product = touched.get(product_id) or _load_product(product_id)
        if product is None:
            logger.warning("Skipping stock movement for unknown product", product_id=product_id)
            continue
        touched[product_id] = product

        delta = sign * int(line["quantity"])
        if product.has_variants:
            variant = _resolve_variant(product, line)
            if variant is None:
                logger.warning(
                    "No variant matches order line, stock left untouched",
                    product_id=product_id,
                    color_code=line.get("color_code"),
                    size=line.get("size"),
                )
                continue
            before = variant.stock
            after = product.adjust_variant_stock(variant, delta)
            logger.info(
                "Variant stock moved",
                product_id=product_id,
                variant_id=str(variant.id),
                before=before,
                after=after,
                stock_total=product.stock_total,
            )
        else:
            before = product.stock
            after = product.adjust_stock(delta)
            logger.info("Product stock moved", product_id=product_id, before=before, after=after)

    for product in touched.values():
        repo.add(product)


def reduce_stock(items: list[dict]) -> None:
    """Take the lines' quantities out of stock, never going below zero."""
    _move_stock(items, -1)


def restore_stock(items: list[dict]) -> None:
    """Put the lines' quantities back into stock."""
    _move_stock(items, 1)


def sync_product_stock_from_variants(product_id) -> int:
    repo = current_domain.repository_for(Product)
    product = repo.get(product_id)
    with atomic_change(product):
        product.sync_stock_from_variants()
    repo.add(product)
    return product.stock_total


def was_stock_already_reduced(order_id) -> bool:
    """Stock has been taken for an order exactly when its status is a confirmed one."""
    order = current_domain.repository_for(Order).get(order_id)
    return is_confirmed_status(order.status)


def confirmed_sold_units(product_id, variant_id=None) -> int:
    """Units of a product (or one of its variants) sold in confirmed orders."""
    statuses = [status.value for status in CONFIRMED_STATUSES]
    orders = current_domain.repository_for(Order)._dao.query.filter(status__in=statuses).all().items

    sold = 0
    for order in orders:
        for item in order.items:
            if str(item.product_id) != str(product_id):
                continue
            if variant_id and str(item.variant_id) != str(variant_id):
                continue
            sold += item.quantity
    return sold
