"""Declarative configuration items that providers negotiate with the caller.

A provider declares the items it understands in a ``ConfigurationSet``. The
orchestrator merges that set with the global items, records user supplied
values, and finally binds the set onto the provider's typed config model.

Item names use hyphens (``resource-group``); ``ProviderConfig`` maps them onto
snake_case attributes (``resource_group``).
"""

from collections.abc import Iterator
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from kdiscover.core.exceptions import ConfigBindError, ConfigConflictError, NotFoundError

ModelT = TypeVar("ModelT", bound=BaseModel)


class ConfigItemKind(str, Enum):
    """Value kind of a configuration item."""

    STRING = "string"
    BOOL = "bool"
    INT = "int"
    STRING_SLICE = "string-slice"


class ConfigItem(BaseModel):
    """A single named, typed configuration item."""

    model_config = ConfigDict(validate_assignment=True)

    name: str
    kind: ConfigItemKind
    description: str = ""
    default: Any = None
    short: str | None = None
    required: bool = False
    sensitive: bool = False
    hidden: bool = False
    value: Any = None

    @property
    def has_value(self) -> bool:
        """Whether an explicit value was supplied."""
        return self.value is not None

    def effective_value(self) -> Any:
        """Explicit value if set, otherwise the declared default."""
        return self.value if self.value is not None else self.default


class ProviderConfig(BaseModel):
    """Base for provider typed configuration.

    Fields are populated from hyphenated configuration item names.
    """

    model_config = ConfigDict(
        alias_generator=lambda field_name: field_name.replace("_", "-"),
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class ConfigurationSet:
    """Ordered mapping of configuration item name to ``ConfigItem``."""

    def __init__(self) -> None:
        self._items: dict[str, ConfigItem] = {}
        self._bound = False

    # Declaration

    def add(
        self,
        name: str,
        kind: ConfigItemKind,
        default: Any = None,
        description: str = "",
    ) -> ConfigItem:
        """Declare a configuration item.

        Declaring a default makes the item optional; without one it is required.
        Required-ness is only enforced when the set is bound.

        Raises:
            ConfigConflictError: If an item with this name is already declared
        """
        if name in self._items:
            raise ConfigConflictError(f"configuration item already declared: {name}")

        item = ConfigItem(
            name=name,
            kind=kind,
            default=default,
            description=description,
            required=default is None,
        )
        self._items[name] = item
        return item

    def string(self, name: str, default: str | None = None, description: str = "") -> ConfigItem:
        return self.add(name, ConfigItemKind.STRING, default, description)

    def boolean(self, name: str, default: bool | None = None, description: str = "") -> ConfigItem:
        return self.add(name, ConfigItemKind.BOOL, default, description)

    def integer(self, name: str, default: int | None = None, description: str = "") -> ConfigItem:
        return self.add(name, ConfigItemKind.INT, default, description)

    def string_slice(
        self, name: str, default: list[str] | None = None, description: str = ""
    ) -> ConfigItem:
        return self.add(name, ConfigItemKind.STRING_SLICE, default, description)

    def set_short(self, name: str, short: str) -> None:
        """Assign a single character alias to an item.

        Alias clashes are detected when sets are merged.
        """
        if len(short) != 1:
            raise ConfigConflictError(f"short alias for {name} must be one character: {short!r}")
        self.get(name).short = short

    def set_required(self, name: str) -> None:
        self.get(name).required = True

    def set_hidden(self, name: str) -> None:
        self.get(name).hidden = True

    def set_sensitive(self, name: str) -> None:
        self.get(name).sensitive = True

    def set_default(self, name: str, default: Any) -> None:
        """Replace the declared default of an item, making it optional.

        Raises:
            NotFoundError: If the item is not declared
            ConfigBindError: If the set has already been bound
        """
        if self._bound:
            raise ConfigBindError(f"cannot change {name}: configuration set is already bound")

        item = self.get(name)
        item.default = default
        item.required = False

    # Access

    def get(self, name: str) -> ConfigItem:
        """Get an item by name.

        Raises:
            NotFoundError: If no item with this name exists
        """
        try:
            return self._items[name]
        except KeyError:
            raise NotFoundError("configuration item", name) from None

    def exists(self, name: str) -> bool:
        return name in self._items

    def names(self) -> list[str]:
        return list(self._items)

    def items(self) -> list[ConfigItem]:
        return list(self._items.values())

    def values(self) -> dict[str, Any]:
        """Effective values (explicit value or default) keyed by item name."""
        return {name: item.effective_value() for name, item in self._items.items()}

    @property
    def bound(self) -> bool:
        return self._bound

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def __iter__(self) -> Iterator[ConfigItem]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"ConfigurationSet({self.names()!r})"

    # Values

    def set_value(self, name: str, value: Any) -> None:
        """Record a user supplied value for an item.

        String values for string-slice items are split on commas.

        Raises:
            NotFoundError: If the item is not declared
            ConfigBindError: If the set has already been bound
        """
        if self._bound:
            raise ConfigBindError(f"cannot set {name}: configuration set is already bound")

        item = self.get(name)
        if item.kind is ConfigItemKind.STRING_SLICE and isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        item.value = value

    def set_values(self, values: dict[str, Any]) -> None:
        for name, value in values.items():
            self.set_value(name, value)

    # Negotiation

    def merge(self, other: "ConfigurationSet") -> "ConfigurationSet":
        """Merge two sets into a new one, keeping declaration order.

        Raises:
            ConfigConflictError: If an item name or short alias appears twice
        """
        merged = ConfigurationSet()
        shorts: dict[str, str] = {}

        for item in [*self.items(), *other.items()]:
            if item.name in merged._items:
                raise ConfigConflictError(f"configuration item declared twice: {item.name}")
            if item.short is not None:
                owner = shorts.get(item.short)
                if owner is not None:
                    raise ConfigConflictError(
                        f"short alias {item.short!r} used by both {owner} and {item.name}"
                    )
                shorts[item.short] = item.name
            merged._items[item.name] = item.model_copy(deep=True)

        return merged

    def missing_required(self) -> list[str]:
        return [
            item.name
            for item in self._items.values()
            if item.required and item.effective_value() is None
        ]

    def validate(self) -> None:
        """Check every required item has a value.

        Raises:
            ConfigBindError: If any required item is unset
        """
        missing = self.missing_required()
        if missing:
            raise ConfigBindError(f"required configuration items not set: {', '.join(missing)}")

    def bind(self, model_type: type[ModelT]) -> ModelT:
        """Unmarshal effective values onto a typed config model.

        The set is frozen afterwards; later ``set_value`` calls fail.

        Args:
            model_type: pydantic model, usually a ``ProviderConfig`` subclass

        Returns:
            Populated model instance

        Raises:
            ConfigBindError: On a missing required item or a type mismatch
        """
        self.validate()

        data = {name: value for name, value in self.values().items() if value is not None}
        try:
            bound = model_type.model_validate(data)
        except ValidationError as e:
            raise ConfigBindError(
                f"binding configuration onto {model_type.__name__}: {e}"
            ) from e

        self._bound = True
        return bound
