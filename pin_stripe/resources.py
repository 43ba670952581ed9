"""Resource types and entity resolution.

Stripe object IDs carry their type as a prefix (``cus_123`` is a customer,
``sub_456`` a subscription), so a call site only needs the ID to find the
collection it lives under.  Collection-level calls (list, create) use a
``Collection`` token naming the plural path segment instead.

Contract:
- ``PrefixTable`` is static and read-only after construction
- Prefixes are disjoint across the table; an overlap fails at construction
- Identifier lookup is longest-prefix-first, ties broken by declaration order
- ``EntityResolver.resolve`` is a pure function of its input and the table
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable

from pin_stripe.errors import (
    ConfigurationError,
    PrefixConflictError,
    UnrecognizedEntityType,
)
from pin_stripe.result import Err, Ok, Result

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_RESOURCE_TYPES",
    "Collection",
    "EntityResolver",
    "PrefixTable",
    "ResolvedResource",
    "ResourceType",
    "default_resolver",
]


class Collection(str):
    """Type token naming a collection by its plural path segment.

    A plain ``str`` is treated as an object identifier; wrapping it in
    ``Collection`` marks it as a collection-level target::

        client.read(Collection("customers"), {"limit": 10})
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Collection({str.__repr__(self)})"


@dataclass(frozen=True, slots=True)
class ResourceType:
    """A named category of remote entity."""

    name: str
    collection_path: str
    id_prefixes: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.collection_path:
            raise ValueError("collection_path must not be empty")
        if any(not prefix for prefix in self.id_prefixes):
            raise ValueError(f"{self.name}: id prefixes must not be empty")


@dataclass(frozen=True, slots=True)
class ResolvedResource:
    """Where a call should go: a collection, optionally one instance in it."""

    collection_path: str
    instance_id: str | None = None

    @property
    def path(self) -> str:
        if self.instance_id is None:
            return f"/v1/{self.collection_path}"
        return f"/v1/{self.collection_path}/{self.instance_id}"


# Declaration order is the tie-break for equal-length prefixes.
DEFAULT_RESOURCE_TYPES: tuple[ResourceType, ...] = (
    ResourceType("customer", "customers", ("cus_",)),
    ResourceType("product", "products", ("prod_", "product_")),
    ResourceType("price", "prices", ("price_",)),
    ResourceType("subscription", "subscriptions", ("sub_",)),
    ResourceType("subscription_item", "subscription_items", ("si_",)),
    ResourceType("invoice", "invoices", ("in_",)),
    ResourceType("invoiceitem", "invoiceitems", ("ii_",)),
    ResourceType("payment_intent", "payment_intents", ("pi_",)),
    ResourceType("payment_method", "payment_methods", ("pm_",)),
    ResourceType("setup_intent", "setup_intents", ("seti_",)),
    ResourceType("charge", "charges", ("ch_", "py_")),
    ResourceType("refund", "refunds", ("re_", "pyr_")),
    ResourceType("dispute", "disputes", ("dp_", "du_")),
    ResourceType("checkout_session", "checkout/sessions", ("cs_",)),
    ResourceType("promotion_code", "promotion_codes", ("promo_",)),
    ResourceType("credit_note", "credit_notes", ("cn_",)),
    ResourceType("quote", "quotes", ("qt_",)),
    ResourceType("payout", "payouts", ("po_",)),
    ResourceType("transfer", "transfers", ("tr_",)),
    ResourceType("balance_transaction", "balance_transactions", ("txn_",)),
    ResourceType("tax_rate", "tax_rates", ("txr_",)),
    ResourceType("account", "accounts", ("acct_",)),
    ResourceType("file", "files", ("file_",)),
    ResourceType("event", "events", ("evt_",)),
    ResourceType("webhook_endpoint", "webhook_endpoints", ("we_",)),
)


class PrefixTable:
    """Static ordered mapping from identifier prefix to resource type."""

    def __init__(self, resource_types: Iterable[ResourceType]) -> None:
        types = tuple(resource_types)
        owners: list[tuple[str, ResourceType]] = []
        collections: dict[str, ResourceType] = {}

        for resource_type in types:
            if resource_type.collection_path in collections:
                raise ConfigurationError(
                    f"Collection {resource_type.collection_path!r} declared twice"
                )
            collections[resource_type.collection_path] = resource_type
            for prefix in resource_type.id_prefixes:
                for seen, owner in owners:
                    # Either prefix starting the other means one ID could match both.
                    if seen.startswith(prefix) or prefix.startswith(seen):
                        raise PrefixConflictError(prefix, owner.name, resource_type.name)
                owners.append((prefix, resource_type))

        # sorted() is stable, so equal lengths keep declaration order.
        self._entries: tuple[tuple[str, ResourceType], ...] = tuple(
            sorted(owners, key=lambda entry: len(entry[0]), reverse=True)
        )
        self._collections = MappingProxyType(collections)
        self._types = types

    @property
    def resource_types(self) -> tuple[ResourceType, ...]:
        return self._types

    @property
    def collections(self) -> MappingProxyType:
        return self._collections

    def match(self, identifier: str) -> ResourceType | None:
        """Return the resource type owning *identifier*'s prefix, if any."""
        for prefix, resource_type in self._entries:
            if identifier.startswith(prefix):
                return resource_type
        return None

    def collection(self, name: str) -> ResourceType | None:
        return self._collections.get(name)

    def __len__(self) -> int:
        return len(self._types)


class EntityResolver:
    """Maps an identifier or a ``Collection`` token to a ``ResolvedResource``."""

    def __init__(self, table: PrefixTable | None = None) -> None:
        self._table = table if table is not None else PrefixTable(DEFAULT_RESOURCE_TYPES)

    @property
    def table(self) -> PrefixTable:
        return self._table

    def resolve(self, target: Any) -> Result[ResolvedResource, UnrecognizedEntityType]:
        """Resolve an identifier (``"cus_123"``) or token (``Collection("customers")``).

        Checks ``Collection`` before ``str`` since the token is a ``str`` subclass.
        """
        if isinstance(target, Collection):
            resource_type = self._table.collection(str(target))
            if resource_type is None:
                return Err(UnrecognizedEntityType(target))
            return Ok(ResolvedResource(resource_type.collection_path))

        if isinstance(target, str):
            resource_type = self._table.match(target)
            if resource_type is None:
                return Err(UnrecognizedEntityType(target))
            return Ok(ResolvedResource(resource_type.collection_path, target))

        return Err(UnrecognizedEntityType(target))

    def resolve_collection(self, target: Any) -> Result[ResolvedResource, UnrecognizedEntityType]:
        """Resolve a target that must name a collection (create)."""
        if not isinstance(target, Collection):
            return Err(UnrecognizedEntityType(target))
        return self.resolve(target)

    def resolve_instance(self, target: Any) -> Result[ResolvedResource, UnrecognizedEntityType]:
        """Resolve a target that must name one object (update, delete)."""
        if isinstance(target, Collection) or not isinstance(target, str):
            return Err(UnrecognizedEntityType(target))
        return self.resolve(target)


_default_resolver: EntityResolver | None = None


def default_resolver() -> EntityResolver:
    """Shared resolver over ``DEFAULT_RESOURCE_TYPES`` (built on first use)."""
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = EntityResolver()
        logger.debug("Prefix table built with %d resource types", len(_default_resolver.table))
    return _default_resolver
