"""Resolve one database connector and one storage connector from configuration.

Resolution steps (per category):
1. Collect distinct `Type` tags in first-seen order; none -> NO_BACKENDS_CONFIGURED.
2. Pick a tag: explicit selector from config, the only tag present, or ask
   the injected `SelectionStrategy`; bad answers -> INVALID_SELECTION.
3. First entry with that tag; none -> NO_MATCHING_CONFIG.
4. Unknown tag -> INVALID_SELECTION.
5. Required fields non-empty, in declared order -> MISSING_FIELD.
6. Construct; any exception -> CONSTRUCTION_FAILED (never retried).
"""

from __future__ import annotations

import logging
import sys
from typing import Callable, List, Optional, Protocol, Sequence, TextIO, Tuple, Type, TypeVar

from pydantic import BaseModel

from dbbackup.core.connectors import loader
from dbbackup.core.connectors.base import DatabaseConnector, StorageConnector
from dbbackup.domain.enums import ConfigErrorReason
from dbbackup.domain.errors import ConfigError
from dbbackup.schemas.config import AppConfig


logger = logging.getLogger(__name__)

C = TypeVar("C")


class SelectionStrategy(Protocol):
    def choose(self, category: str, candidates: Sequence[str]) -> str:
        """Return one of `candidates` or raise ConfigError(INVALID_SELECTION)."""
        ...


class DeclarativeSelection:
    """Never prompts: ambiguity must be resolved in the configuration file."""

    def choose(self, category: str, candidates: Sequence[str]) -> str:
        raise ConfigError(
            ConfigErrorReason.INVALID_SELECTION,
            f"Multiple {category} types configured ({', '.join(candidates)}); "
            f"set {_SELECTOR_KEYS[category]} in the configuration",
        )


class InteractiveSelection:
    """Print the candidates and read the operator's choice from a stream."""

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout

    def choose(self, category: str, candidates: Sequence[str]) -> str:
        print(f"Available {category} types:", file=self._stdout)
        for candidate in candidates:
            print(f"- {candidate}", file=self._stdout)
        print(f"Select a {category} type: ", end="", file=self._stdout, flush=True)
        answer = (self._stdin.readline() or "").strip()
        if not answer or answer not in candidates:
            raise ConfigError(
                ConfigErrorReason.INVALID_SELECTION,
                f"Invalid {category} type selected: {answer!r}",
            )
        return answer


_SELECTOR_KEYS = {"database": "DatabaseType", "storage": "StorageType"}


def _field_alias(model: BaseModel, field_name: str) -> str:
    info = type(model).model_fields.get(field_name)
    return (info.alias if info is not None and info.alias else field_name)


class BackendResolver:
    """Business logic turning configuration entries into connector instances."""

    def __init__(self, config: AppConfig, selection: Optional[SelectionStrategy] = None) -> None:
        self.config = config
        self.selection = selection or DeclarativeSelection()

    def resolve_database_connector(self) -> DatabaseConnector:
        return self._resolve(
            "database",
            self.config.databases,
            self.config.database_type,
            loader.get_database_connector_class,
        )

    def resolve_storage_connector(self) -> StorageConnector:
        return self._resolve(
            "storage",
            self.config.storage,
            self.config.storage_type,
            loader.get_storage_connector_class,
        )

    def resolve(self) -> Tuple[DatabaseConnector, StorageConnector]:
        return self.resolve_database_connector(), self.resolve_storage_connector()

    def _choose_type(self, category: str, types: List[str], selector: Optional[str]) -> str:
        if selector:
            if selector not in types:
                raise ConfigError(
                    ConfigErrorReason.INVALID_SELECTION,
                    f"{_SELECTOR_KEYS[category]}={selector!r} does not match any configured {category} type",
                )
            return selector
        if len(types) == 1:
            return types[0]
        chosen = self.selection.choose(category, types)
        if not chosen or chosen not in types:
            raise ConfigError(ConfigErrorReason.INVALID_SELECTION, f"Invalid {category} type selected: {chosen!r}")
        return chosen

    def _resolve(
        self,
        category: str,
        entries: Sequence[BaseModel],
        selector: Optional[str],
        get_class: Callable[[str], Type[C]],
    ) -> C:
        if not entries:
            raise ConfigError(ConfigErrorReason.NO_BACKENDS_CONFIGURED, f"No {category} backends configured")

        types: List[str] = []
        for entry in entries:
            tag = getattr(entry, "type", None)
            if tag and tag not in types:
                types.append(tag)
        if not types:
            raise ConfigError(ConfigErrorReason.NO_BACKENDS_CONFIGURED, f"No {category} backend declares a Type")

        chosen = self._choose_type(category, types, selector)

        entry = next((e for e in entries if getattr(e, "type", None) == chosen), None)
        if entry is None:
            raise ConfigError(ConfigErrorReason.NO_MATCHING_CONFIG, f"No {category} configuration found for type: {chosen}")

        try:
            cls = get_class(chosen)
        except KeyError:
            raise ConfigError(ConfigErrorReason.INVALID_SELECTION, f"Unsupported {category} type: {chosen}") from None
        except Exception as exc:
            raise ConfigError(
                ConfigErrorReason.CONSTRUCTION_FAILED,
                f"Cannot load {category} connector for {chosen}: {exc}",
                cause=exc,
            ) from exc

        for field_name in cls.required_fields:
            value = getattr(entry, field_name, None)
            if value is None or (isinstance(value, str) and not value.strip()):
                alias = _field_alias(entry, field_name)
                raise ConfigError(
                    ConfigErrorReason.MISSING_FIELD,
                    f"{category} type {chosen} requires {alias}",
                    field=alias,
                )

        try:
            instance = cls(name=chosen, config=entry)
        except Exception as exc:
            logger.warning("connector_construction_failed | category=%s type=%s error=%s", category, chosen, exc)
            raise ConfigError(
                ConfigErrorReason.CONSTRUCTION_FAILED,
                f"Cannot create {category} connector {chosen}: {exc}",
                cause=exc,
            ) from exc

        logger.info("connector_resolved | category=%s type=%s connector=%s", category, chosen, type(instance).__name__)
        return instance
