"""
Relationship resolver.

One resolver belongs to one owning record. Relations are fetched lazily on
first access and memoized for the resolver's lifetime; discarding the
resolver (``Record.invalidate_relations``) drops every cached result.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from recordmap.errors import ManagerNotRegisteredError
from recordmap.results import Signal
from recordmap.runtime.logging import get_relations_logger, log_with_context
from recordmap.specs.relation import Cardinality, RelationSpec, parse_conditions

if TYPE_CHECKING:
    from recordmap.runtime.record import Record
    from recordmap.runtime.registry import ManagerRegistry

logger = get_relations_logger()


class RelationshipResolver:
    """
    Resolves named relations of one owning record.

    Every deferred field reference in a relation's conditions is read from
    the owner when the relation is fetched, so the same declaration serves
    any owning record.
    """

    def __init__(
        self,
        owner: Record,
        relations: Mapping[str, RelationSpec | Mapping[str, Any]],
        registry: ManagerRegistry | None,
    ):
        """
        Initialize the resolver.

        Args:
            owner: Record whose relations are resolved
            relations: Relation declarations by name; mappings are validated
            registry: Registry providing target managers

        Raises:
            MalformedDeclarationError: If any declaration is invalid
        """
        self.owner = owner
        self.registry = registry
        self._relations: dict[str, RelationSpec] = {}
        for name, relation in relations.items():
            if not isinstance(relation, RelationSpec):
                relation = RelationSpec.model_validate(dict(relation))
            parse_conditions(relation.conditions)
            self._relations[name] = relation
        self._cache: dict[str, Any] = {}

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._relations)

    def is_cached(self, name: str) -> bool:
        return name in self._cache

    def get(self, name: str) -> Any:
        """
        Resolve a relation, fetching it on first access.

        Returns:
            Record (``one``), list of records (``many``), ``Signal.NOT_FOUND``
            for an unmatched ``one`` relation, or ``Signal.NO_SUCH_RELATION``
        """
        if name in self._cache:
            return self._cache[name]

        relation = self._relations.get(name)
        if relation is None:
            log_with_context(logger, logging.DEBUG, f"no relation '{name}'", relation=name)
            return Signal.NO_SUCH_RELATION

        result = self._fetch(relation)
        self._cache[name] = result
        return result

    def _fetch(self, relation: RelationSpec) -> Any:
        if self.registry is None:
            raise ManagerNotRegisteredError(
                f"Relation target '{relation.target}' cannot be resolved without a registry"
            )
        target = self.registry.resolve(relation.target)
        query, params = target.translator.translate(relation.conditions, owner=self.owner)
        log_with_context(
            logger,
            logging.DEBUG,
            f"resolve {relation.target}",
            target=relation.target,
            cardinality=relation.cardinality.value,
            where=query.where_sql(),
            params=params,
        )
        if relation.cardinality is Cardinality.ONE:
            return target.fetch(query, params)
        return target.fetch_all(query, params)

    def invalidate(self, name: str | None = None) -> None:
        """Drop one cached relation, or all of them."""
        if name is None:
            self._cache.clear()
        else:
            self._cache.pop(name, None)
