"""Components and enumerations that describe roads, lanes, intersections and cars."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

EntityId = int

# How long a traffic light stays green/orange, in lane ticks (one every 8 frames).
TRAFFIC_LIGHT_GREEN_TICKS = 32
TRAFFIC_LIGHT_ORANGE_TICKS = 8

MAX_CARS_PER_LANE = 8
ACCELERATION_FORCE = 1.5
BREAK_FORCE = 5.0
HARD_BREAK_FORCE = 12.0
MAX_WAIT_COUNT = 60
PLACEHOLDER_CAR_MASS = 10.0
PLACEHOLDER_CAR_LENGTH = 3.0

_RESERVATION_MODULUS = 256


class ReservationError(Exception):
    """Raised when an intersection is released with a reservation that is not current."""


class CarState(enum.Enum):
    UNKNOWN = 0
    ACCELERATING = 1
    DRIVING = 2
    BREAKING = 3
    BREAKING_HARD = 4
    STOPPED = 5
    CRASHED = 6


class EndOfLaneState(enum.Enum):
    DEFAULT = 0
    RESERVE_INTERSECTION = 1
    WAIT_FOR_INTERSECTION = 2
    MOVE_ON_INTERSECTION = 3
    ON_INTERSECTION = 4
    WAIT_FOR_PROTECTED_INTERSECTION = 5
    MOVE_ON_PROTECTED_INTERSECTION = 6
    ON_PROTECTED_INTERSECTION = 7


class LightColor(enum.Enum):
    RED = 0
    ORANGE = 1
    GREEN = 2


class TrafficLightState(enum.Enum):
    DEFAULT = 0    # no reservation, light is red
    RESERVED = 1   # intersection reserved, light is red
    ACQUIRED = 2   # intersection acquired, light is green
    RELEASING = 3  # releasing intersection, light is orange


class Direction(enum.IntEnum):
    TOP = 0
    RIGHT = 1
    BOTTOM = 2
    LEFT = 3


class Connection(enum.IntEnum):
    TOP_TO_BOTTOM = 0
    LEFT_TO_RIGHT = 1
    TOP_TO_LEFT = 2
    TOP_TO_RIGHT = 3
    BOTTOM_TO_RIGHT = 4
    BOTTOM_TO_LEFT = 5


@dataclass
class Light:
    color: LightColor = LightColor.RED
    t: float = 0.0
    cycle_time: float = 30.0
    red_pct: float = 0.75


@dataclass
class TrafficLight:
    """Visible state of a traffic light: 0 green, 1 orange, 2 red."""

    state: int = 0


@dataclass
class Car:
    position: float = 0.0
    length: float = 0.0
    mass: float = 0.0
    speed: float = 0.0
    target_speed: float = 0.0
    state: CarState = CarState.UNKNOWN
    eol_state: EndOfLaneState = EndOfLaneState.DEFAULT
    reservation: int = 0
    wait_count: int = 0
    next_lane: Optional[EntityId] = None


class LaneCars:
    """Ordered cars on a lane (front car first) with their matching entities."""

    def __init__(self) -> None:
        self.cars: List[Car] = []
        self.entities: List[Optional[EntityId]] = []

    def __len__(self) -> int:
        return len(self.cars)

    def __getitem__(self, index: int) -> Car:
        return self.cars[index]

    def __iter__(self) -> Iterator[Car]:
        return iter(self.cars)

    def __repr__(self) -> str:
        return f"LaneCars({self.cars!r})"

    @property
    def last(self) -> Optional[Car]:
        """The car at the back of the lane, or None when the lane is empty."""
        return self.cars[-1] if self.cars else None

    def add(self, car: Car, entity: Optional[EntityId]) -> None:
        """Append a car at the back of the lane."""
        if len(self.cars) >= MAX_CARS_PER_LANE:
            raise ValueError("lane already has the maximum number of cars")
        self.cars.append(car)
        self.entities.append(entity)

    def remove_front(self, count: int) -> List[Tuple[Car, Optional[EntityId]]]:
        """Remove the first ``count`` cars and return them with their entities."""
        if count < 0 or count > len(self.cars):
            raise ValueError(f"cannot remove {count} cars from a lane with {len(self.cars)}")
        removed = list(zip(self.cars[:count], self.entities[:count]))
        del self.cars[:count]
        del self.entities[:count]
        return removed


@dataclass
class Lane:
    length: float = 0.0
    width: float = 0.0
    max_speed: float = 0.0
    next: Optional[EntityId] = None
    road: Optional[EntityId] = None


@dataclass
class LaneTrafficLight:
    state: TrafficLightState = TrafficLightState.DEFAULT
    reservation: int = 0
    timer: int = 0
    light: Optional[EntityId] = None


@dataclass
class Corner:
    radius: float = 0.0
    invert_direction: bool = False


@dataclass
class RoadConnect:
    """Connection to a road; ``edge`` selects the side (0 or 1)."""

    road: Optional[EntityId] = None
    edge: int = 0


@dataclass
class Road:
    length: float = 0.0
    lane_width: float = 0.0
    max_speed: float = 0.0
    corner: bool = False
    invert_corner: bool = False
    next: RoadConnect = field(default_factory=RoadConnect)
    intersection: Optional[EntityId] = None


@dataclass
class RoadLanes:
    lanes: List[Optional[EntityId]] = field(default_factory=lambda: [None, None])

    def __getitem__(self, index: int) -> Optional[EntityId]:
        return self.lanes[index]

    def __setitem__(self, index: int, value: Optional[EntityId]) -> None:
        self.lanes[index] = value


@dataclass
class Intersection:
    """Incoming roads indexed by Direction, plus lane geometry."""

    roads: List[RoadConnect] = field(default_factory=lambda: [RoadConnect() for _ in Direction])
    lane_width: float = 0.0
    max_speed: float = 0.0


@dataclass
class IntersectionRoads:
    """Roads on an intersection (by Connection), movements (by Direction) and reservations."""

    roads: List[Optional[EntityId]] = field(default_factory=lambda: [None] * len(Connection))
    movements: List[Optional[EntityId]] = field(default_factory=lambda: [None] * len(Direction))
    current_reservation: int = 0
    next_reservation: int = 0

    def __getitem__(self, index: int) -> Optional[EntityId]:
        return self.roads[index]

    def reserve(self) -> int:
        """Take the next reservation ticket."""
        ticket = self.next_reservation
        self.next_reservation = (ticket + 1) % _RESERVATION_MODULUS
        return ticket

    def release(self, reservation: int) -> None:
        """Release the current reservation, admitting the next ticket."""
        if reservation != self.current_reservation:
            raise ReservationError(
                f"reservation {reservation} is not current ({self.current_reservation})"
            )
        self.current_reservation = (self.current_reservation + 1) % _RESERVATION_MODULUS


@dataclass
class IntersectionMovement:
    """Outgoing lanes (left, straight, right) for an incoming lane."""

    intersection: Optional[EntityId] = None
    lanes: Tuple[Optional[EntityId], Optional[EntityId], Optional[EntityId]] = (None, None, None)