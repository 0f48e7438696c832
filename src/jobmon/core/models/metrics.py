"""Raw remote metric updates and the aggregator bindings that interpret them.

An aggregator declared by the user is implemented on the service by one
metric per execution step that applies it. `AggregatorBinding` records which
internal step names implement an aggregator (and the user-facing name of
each step) together with the combine strategy that reduces the raw updates
of one step into a single value.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

USER_ORIGIN = "user"


class MetricName(BaseModel):
    name: str
    origin: Optional[str] = None
    context: Dict[str, str] = Field(default_factory=dict)


class MetricUpdate(BaseModel):
    name: MetricName
    scalar: Any = None
    mean_sum: Any = Field(default=None, alias="meanSum")
    mean_count: Any = Field(default=None, alias="meanCount")
    kind: Optional[str] = None
    update_time: Optional[datetime] = Field(default=None, alias="updateTime")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }

    @property
    def step(self) -> Optional[str]:
        return self.name.context.get("step")

    @property
    def tentative(self) -> bool:
        return self.name.context.get("tentative", "").lower() == "true"


def _number(value: Any) -> Any:
    # int64 values may arrive JSON-encoded as strings
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return float(value)
    return value


class CombineStrategy(Protocol):
    """Reduces the updates of one step to a value, or None if none is usable."""

    def combine(self, updates: Sequence[MetricUpdate]) -> Any:
        ...


def _scalars(updates: Sequence[MetricUpdate]) -> List[Any]:
    # updates without a scalar (mean pairs, distributions) carry no value here
    return [_number(u.scalar) for u in updates if u.scalar is not None]


class SumCombine:
    def combine(self, updates: Sequence[MetricUpdate]) -> Any:
        values = _scalars(updates)
        return sum(values) if values else None


class MinCombine:
    def combine(self, updates: Sequence[MetricUpdate]) -> Any:
        values = _scalars(updates)
        return min(values) if values else None


class MaxCombine:
    def combine(self, updates: Sequence[MetricUpdate]) -> Any:
        values = _scalars(updates)
        return max(values) if values else None


class MeanCombine:
    """Mean over all updates.

    Updates that carry a sum/count pair are merged exactly; plain scalars
    count as one observation each.
    """

    def combine(self, updates: Sequence[MetricUpdate]) -> Any:
        total = 0
        count = 0
        for update in updates:
            if update.mean_count is not None:
                total += _number(update.mean_sum or 0)
                count += _number(update.mean_count)
            elif update.scalar is not None:
                total += _number(update.scalar)
                count += 1
        if count == 0:
            return None
        return total / count


class LatestCombine:
    """Value of the most recent update (by update time, then arrival order)."""

    def combine(self, updates: Sequence[MetricUpdate]) -> Any:
        usable = [u for u in updates if u.scalar is not None]
        if not usable:
            return None
        latest = usable[0]
        for update in usable[1:]:
            if latest.update_time is None or (
                update.update_time is not None and update.update_time >= latest.update_time
            ):
                latest = update
        return _number(latest.scalar)


class CombineKind(StrEnum):
    sum = "sum"
    min = "min"
    max = "max"
    mean = "mean"
    latest = "latest"


COMBINE_STRATEGIES: Dict[CombineKind, CombineStrategy] = {
    CombineKind.sum: SumCombine(),
    CombineKind.min: MinCombine(),
    CombineKind.max: MaxCombine(),
    CombineKind.mean: MeanCombine(),
    CombineKind.latest: LatestCombine(),
}


class AggregatorBinding(BaseModel):
    """Maps a user-declared aggregator onto the remote metrics implementing it.

    Attributes:
        name: Aggregator name, also the remote metric name
        steps: Internal step name -> user-facing full step name
        combine: How several raw updates for one step reduce to one value
    """

    name: str
    steps: Dict[str, str] = Field(default_factory=dict)
    combine: CombineKind = CombineKind.sum

    model_config = {"frozen": True}

    @property
    def strategy(self) -> CombineStrategy:
        return COMBINE_STRATEGIES[self.combine]

    def matches(self, update: MetricUpdate) -> bool:
        """True for committed user metrics of this aggregator on a bound step."""
        origin = (update.name.origin or "").lower()
        return (
            origin == USER_ORIGIN
            and update.name.name == self.name
            and update.step in self.steps
            and not update.tentative
        )

    def project(self, updates: Iterable[MetricUpdate]) -> Dict[str, Any]:
        """Reduce matching updates to one value per user-facing step name.

        Steps without any matching update, or whose updates carry no usable
        value, are absent from the result.
        """
        grouped: Dict[str, List[MetricUpdate]] = {}
        for update in updates:
            if self.matches(update):
                grouped.setdefault(self.steps[update.step], []).append(update)
        values: Dict[str, Any] = {}
        for step, group in grouped.items():
            value = self.strategy.combine(group)
            if value is not None:
                values[step] = value
        return values


class AggregatorBindings:
    """The set of aggregators used by one job, keyed by name."""

    def __init__(self, bindings: Iterable[AggregatorBinding] = ()) -> None:
        self._bindings: Dict[str, AggregatorBinding] = {}
        for binding in bindings:
            if binding.name in self._bindings:
                raise ValueError(f"Duplicate aggregator binding: {binding.name}")
            self._bindings[binding.name] = binding

    def get(self, name: str) -> Optional[AggregatorBinding]:
        return self._bindings.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def __iter__(self) -> Iterator[AggregatorBinding]:
        return iter(self._bindings.values())

    def __len__(self) -> int:
        return len(self._bindings)
