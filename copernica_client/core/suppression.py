from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Union

from copernica_client.errors import FailureCategory

CategoryLike = Union[FailureCategory, str]


def _category(value: CategoryLike) -> FailureCategory:
    if isinstance(value, FailureCategory):
        return value
    try:
        return FailureCategory[str(value).strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown failure category '{value}'.")


@dataclass(frozen=True)
class SuppressionPolicy:
    """
    Set of failure categories that degrade into a return value instead of
    raising. Immutable; combine policies with ``|`` and ``without()``.
    """
    categories: FrozenSet[FailureCategory] = field(default_factory=frozenset)

    @classmethod
    def none(cls) -> "SuppressionPolicy":
        return cls()

    @classmethod
    def all(cls) -> "SuppressionPolicy":
        return cls(frozenset(FailureCategory))

    @classmethod
    def default(cls) -> "SuppressionPolicy":
        # Some endpoints may legitimately omit the created ID; we don't know which.
        return cls(frozenset({FailureCategory.POST_NO_ID}))

    @classmethod
    def of(cls, *categories: CategoryLike) -> "SuppressionPolicy":
        return cls(frozenset(_category(c) for c in categories))

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "SuppressionPolicy":
        return cls.of(*names)

    def suppresses(self, category: FailureCategory) -> bool:
        return category in self.categories

    def without(self, *categories: CategoryLike) -> "SuppressionPolicy":
        return SuppressionPolicy(self.categories - {_category(c) for c in categories})

    def __or__(self, other: "SuppressionPolicy") -> "SuppressionPolicy":
        if not isinstance(other, SuppressionPolicy):
            return NotImplemented
        return SuppressionPolicy(self.categories | other.categories)

    def __contains__(self, category: FailureCategory) -> bool:
        return self.suppresses(category)

    def names(self):
        return sorted(c.value for c in self.categories)
