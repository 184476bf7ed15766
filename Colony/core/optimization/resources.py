"""
Resource Profiles
=================

Immutable descriptors of the selectable computation resources (models) and
the registry the optimizer selects from.

Resources are registered once at startup; a profile is never mutated after
registration. Prices are USD per work unit (token).
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional

from Colony.core.foundation.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceProfile:
    """Immutable descriptor of one selectable resource."""
    name: str
    cost_per_unit: float
    capabilities: FrozenSet[str] = field(default_factory=frozenset)
    quality: float = 50.0
    speed: float = 50.0
    context_window: int = 4096
    max_output: int = 4096

    def __post_init__(self):
        if not self.name:
            raise ConfigurationError("ResourceProfile.name must be set", field='name')
        if not isinstance(self.capabilities, frozenset):
            object.__setattr__(self, 'capabilities', frozenset(self.capabilities))
        cost = self.cost_per_unit
        if not isinstance(cost, (int, float)) or math.isnan(cost) or cost < 0:
            raise ConfigurationError(
                f"Resource '{self.name}' has invalid cost_per_unit {cost!r}",
                field='cost_per_unit', value=cost,
            )
        for rating in ('quality', 'speed'):
            value = getattr(self, rating)
            if not isinstance(value, (int, float)) or not 0 <= value <= 100:
                raise ConfigurationError(
                    f"Resource '{self.name}' has {rating} {value!r} outside [0, 100]",
                    field=rating, value=value,
                )
        for size in ('context_window', 'max_output'):
            value = getattr(self, size)
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(
                    f"Resource '{self.name}' has invalid {size} {value!r}",
                    field=size, value=value,
                )

    def covers(self, requirements: Iterable[str]) -> bool:
        """True when every requirement is one of this resource's capability tags."""
        return all(req in self.capabilities for req in requirements)

    def capability_match(self, requirements: List[str]) -> float:
        """Covered fraction of ``requirements`` (1.0 when there are none)."""
        if not requirements:
            return 1.0
        return sum(1 for req in requirements if req in self.capabilities) / len(requirements)

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'cost_per_unit': self.cost_per_unit,
            'capabilities': sorted(self.capabilities),
            'quality': self.quality,
            'speed': self.speed,
            'context_window': self.context_window,
            'max_output': self.max_output,
        }


DEFAULT_RESOURCES = (
    ResourceProfile(
        name='gpt-4',
        cost_per_unit=0.00003,
        capabilities=frozenset({'reasoning', 'analysis', 'complex_tasks', 'high_quality', 'code_generation'}),
        quality=95, speed=70, context_window=8192, max_output=8192,
    ),
    ResourceProfile(
        name='gpt-4-turbo',
        cost_per_unit=0.00001,
        capabilities=frozenset({'reasoning', 'analysis', 'complex_tasks', 'high_quality',
                                'large_context', 'code_generation'}),
        quality=95, speed=85, context_window=128000, max_output=128000,
    ),
    ResourceProfile(
        name='gpt-3.5-turbo',
        cost_per_unit=0.0000015,
        capabilities=frozenset({'simple_tasks', 'fast_response', 'cost_effective'}),
        quality=80, speed=95, context_window=4096, max_output=4096,
    ),
    ResourceProfile(
        name='claude-3-opus',
        cost_per_unit=0.000015,
        capabilities=frozenset({'reasoning', 'analysis', 'complex_tasks', 'very_large_context',
                                'code_generation'}),
        quality=98, speed=60, context_window=200000, max_output=200000,
    ),
    ResourceProfile(
        name='claude-3-sonnet',
        cost_per_unit=0.000003,
        capabilities=frozenset({'reasoning', 'analysis', 'balanced', 'large_context', 'code_generation'}),
        quality=90, speed=80, context_window=200000, max_output=200000,
    ),
)


class ResourceRegistry:
    """
    Ordered, append-only collection of resource profiles.

    Registration order is the tie-break order for selection.
    """

    def __init__(self, resources: Optional[Iterable[ResourceProfile]] = None):
        self._resources: Dict[str, ResourceProfile] = {}
        for profile in (DEFAULT_RESOURCES if resources is None else resources):
            self.register(profile)

    def register(self, profile: ResourceProfile) -> None:
        if not isinstance(profile, ResourceProfile):
            raise ConfigurationError(f"Expected ResourceProfile, got {type(profile).__name__}")
        if profile.name in self._resources:
            raise ConfigurationError(f"Resource '{profile.name}' is already registered",
                                     field='name', value=profile.name)
        self._resources[profile.name] = profile
        logger.debug(f"Registered resource {profile.name} (${profile.cost_per_unit}/unit)")

    def get(self, name: str) -> Optional[ResourceProfile]:
        return self._resources.get(name)

    def names(self) -> List[str]:
        return list(self._resources)

    def cheapest(self, candidates: Optional[Iterable[ResourceProfile]] = None) -> Optional[ResourceProfile]:
        """Lowest ``cost_per_unit`` among ``candidates`` (registration order breaks ties)."""
        pool = list(self._resources.values() if candidates is None else candidates)
        if not pool:
            return None
        return min(pool, key=lambda p: p.cost_per_unit)

    def most_expensive(self) -> Optional[ResourceProfile]:
        if not self._resources:
            return None
        return max(self._resources.values(), key=lambda p: p.cost_per_unit)

    def __contains__(self, name: str) -> bool:
        return name in self._resources

    def __iter__(self) -> Iterator[ResourceProfile]:
        return iter(list(self._resources.values()))

    def __len__(self) -> int:
        return len(self._resources)


__all__ = [
    'ResourceProfile',
    'ResourceRegistry',
    'DEFAULT_RESOURCES',
]
