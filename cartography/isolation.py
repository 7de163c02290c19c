"""
Legend-click isolation for multi-series charts.

Clicking a legend entry isolates its series; clicking the isolated entry again
shows everything; clicking another entry moves the isolation to it.
"""

from dataclasses import dataclass
from typing import Hashable, Iterable, List, Union


@dataclass(frozen=True)
class AllVisible:
    pass


@dataclass(frozen=True)
class Isolated:
    series_id: Hashable


IsolationState = Union[AllVisible, Isolated]


def click(state: IsolationState, series_id: Hashable) -> IsolationState:
    """Next state after a legend click on `series_id`."""
    if isinstance(state, Isolated) and state.series_id == series_id:
        return AllVisible()
    return Isolated(series_id)


def is_faded(state: IsolationState, series_id: Hashable) -> bool:
    return isinstance(state, Isolated) and state.series_id != series_id


class LegendIsolation:
    """Holds the isolation state for one chart's legend."""

    def __init__(self, series_ids: Iterable[Hashable]):
        self.series_ids: List[Hashable] = list(series_ids)
        self.state: IsolationState = AllVisible()

    def click(self, series_id: Hashable) -> IsolationState:
        if series_id not in self.series_ids:
            raise KeyError(f"Unknown series '{series_id}'")
        self.state = click(self.state, series_id)
        return self.state

    def faded(self) -> List[Hashable]:
        return [sid for sid in self.series_ids if is_faded(self.state, sid)]
