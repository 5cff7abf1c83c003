"""
Routing Resolver

Decides which printers receive which order items.

Station path (newly added items):
- eligible printers are active, auto-print, and in STATION_ITEMS or BOTH mode
- a printer without a station receives every item
- a printer whose station maps categories receives the items in those categories
- a printer whose station maps NO categories receives nothing and is dropped

Billing path (control tickets): active printers in FULL_ORDER or BOTH mode,
no category filtering.
"""
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Protocol, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from kitchenprint.exceptions import RoutingError
from kitchenprint.models.printer import Printer, STATION_PRINT_MODES, BILLING_PRINT_MODES
from kitchenprint.models.product import Product
from kitchenprint.models.station import Station
from kitchenprint.schemas.dispatch import RoutableItem

logger = logging.getLogger(__name__)


# ============================================================================
# Auto-route
# ============================================================================

@dataclass(frozen=True)
class Unfiltered:
    """Printer not bound to a station: receives every item."""

    def select(self, items: Sequence[RoutableItem]) -> List[RoutableItem]:
        return list(items)


@dataclass(frozen=True)
class StationFilter:
    """Printer bound to a station: receives items in the station's categories."""
    station_name: str
    category_ids: FrozenSet[str]

    def select(self, items: Sequence[RoutableItem]) -> List[RoutableItem]:
        # An empty category set selects nothing
        return [item for item in items if item.category_id in self.category_ids]


AutoRoute = Union[Unfiltered, StationFilter]


def auto_route_for(printer: Printer) -> AutoRoute:
    station = printer.station
    if station is None:
        return Unfiltered()
    return StationFilter(station_name=station.name, category_ids=frozenset(station.category_ids))


@dataclass
class StationTarget:
    printer: Printer
    items: List[RoutableItem]
    route: AutoRoute

    @property
    def station_name(self) -> Optional[str]:
        return self.route.station_name if isinstance(self.route, StationFilter) else None


# ============================================================================
# Product catalog
# ============================================================================

class ProductCatalog(Protocol):
    def categories_for(self, branch_id: str, product_ids: Iterable[str]) -> Dict[str, str]:
        """Map product id -> category id for the given products (unknown ids omitted)."""
        ...


class SqlProductCatalog:
    """Catalog lookups against the products table"""

    def __init__(self, db: Session):
        self.db = db

    def categories_for(self, branch_id: str, product_ids: Iterable[str]) -> Dict[str, str]:
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        rows = (
            self.db.query(Product.id, Product.category_id)
            .filter(Product.branch_id == branch_id, Product.id.in_(ids))
            .all()
        )
        return {product_id: category_id for product_id, category_id in rows if category_id}


# ============================================================================
# Resolver
# ============================================================================

class RoutingResolver:
    """Resolves print targets for a branch from the printer configuration"""

    def __init__(self, db: Session, catalog: Optional[ProductCatalog] = None):
        self.db = db
        self.catalog = catalog or SqlProductCatalog(db)

    def _printers(self, branch_id: str, modes, auto_print_only: bool) -> List[Printer]:
        try:
            query = (
                self.db.query(Printer)
                .options(joinedload(Printer.station).selectinload(Station.categories))
                .filter(
                    Printer.branch_id == branch_id,
                    Printer.active.is_(True),
                    Printer.print_mode.in_(modes),
                )
            )
            if auto_print_only:
                query = query.filter(Printer.auto_print.is_(True))
            return query.order_by(Printer.created_at, Printer.id).all()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to load printer configuration",
                extra={"branch_id": branch_id, "error": str(e)},
            )
            raise RoutingError(
                "Unable to load printer configuration",
                details={"branch_id": branch_id},
            ) from e

    def _backfill_categories(self, branch_id: str, items: Sequence[RoutableItem]) -> List[RoutableItem]:
        """Fill missing categories with one catalog lookup for the whole call."""
        missing = {item.product_id for item in items if item.category_id is None and item.product_id}
        if not missing:
            return list(items)

        try:
            mapping = self.catalog.categories_for(branch_id, missing)
        except SQLAlchemyError as e:
            raise RoutingError(
                "Unable to load product categories",
                details={"branch_id": branch_id},
            ) from e

        resolved = []
        for item in items:
            if item.category_id is None and item.product_id in mapping:
                item = item.model_copy(update={"category_id": mapping[item.product_id]})
            resolved.append(item)
        return resolved

    def resolve_station_targets(self, branch_id: str, items: Sequence[RoutableItem]) -> List[StationTarget]:
        """
        Printers and the subset of items each one should print.

        Printer order follows the branch printer list; item order within a
        target follows the input. Targets with no items are omitted.
        """
        printers = self._printers(branch_id, STATION_PRINT_MODES, auto_print_only=True)
        if not printers or not items:
            return []

        items = self._backfill_categories(branch_id, items)

        targets = []
        for printer in printers:
            route = auto_route_for(printer)
            selected = route.select(items)
            if not selected:
                logger.debug(
                    "Printer receives no items",
                    extra={"branch_id": branch_id, "printer_id": printer.id},
                )
                continue
            targets.append(StationTarget(printer=printer, items=selected, route=route))
        return targets

    def resolve_billing_targets(self, branch_id: str) -> List[Printer]:
        return self._printers(branch_id, BILLING_PRINT_MODES, auto_print_only=False)

    def has_billing_printers(self, branch_id: str) -> bool:
        return bool(self.resolve_billing_targets(branch_id))

    def has_printers(self, branch_id: str) -> bool:
        try:
            return (
                self.db.query(Printer.id)
                .filter(Printer.branch_id == branch_id, Printer.active.is_(True))
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            raise RoutingError("Unable to load printer configuration", details={"branch_id": branch_id}) from e
