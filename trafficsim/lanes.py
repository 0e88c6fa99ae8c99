"""Helpers for querying lanes and moving cars onto them."""

from __future__ import annotations

import logging
from typing import Optional

from trafficsim.model import (
    MAX_WAIT_COUNT,
    PLACEHOLDER_CAR_LENGTH,
    PLACEHOLDER_CAR_MASS,
    Car,
    CarState,
    EndOfLaneState,
    EntityId,
    IntersectionMovement,
    Lane,
    LaneCars,
)
from trafficsim.world import World

log = logging.getLogger(__name__)


def min_distance_for_speed(speed: float) -> float:
    """Ideal minimum distance to the car in front for a given speed."""
    return max(speed, 0.1) * 40


def find_next_lane(movement: IntersectionMovement, rng) -> EntityId:
    """Pick an outgoing lane at random, falling through to the next available one."""
    turn = rng.randrange(3)
    for offset in range(3):
        lane = movement.lanes[(turn + offset) % 3]
        if lane:
            return lane
    raise ValueError("intersection without lanes")


def space_in_lane(world: World, lane: EntityId) -> float:
    """Free space at the start of a lane, before the last car on it."""
    cars = world.get(lane, LaneCars)
    last = cars.last
    if last is None:
        return world.get(lane, Lane).length
    return last.position - last.length


def space_in_destination_lane(world: World, next_lane: EntityId) -> float:
    """Free space in the lane that follows ``next_lane``."""
    return space_in_lane(world, world.get(next_lane, Lane).next)


def car_fits_in_destination_lane(world: World, next_lane: EntityId, car: Car) -> bool:
    """Whether ``car`` fits after the cars already heading through ``next_lane``."""
    space = space_in_destination_lane(world, next_lane)
    space -= sum(c.length for c in world.get(next_lane, LaneCars))
    return space > car.length


def wait_for_lane(car: Car, movement: IntersectionMovement, rng) -> None:
    """Count a waiting tick; after too long, pick a different outgoing lane."""
    car.wait_count += 1
    if car.wait_count > MAX_WAIT_COUNT:
        # Trying another lane prevents gridlock on a blocked outgoing lane.
        car.next_lane = find_next_lane(movement, rng)
        car.wait_count = 0


def add_car_to_lane(
    world: World,
    out_lane: Optional[EntityId],
    car_entity: Optional[EntityId],
    position: float = 0.0,
    speed: float = 0.0,
    target_speed: float = 0.0,
    state: CarState = CarState.UNKNOWN,
    eol_state: EndOfLaneState = EndOfLaneState.DEFAULT,
    reservation: int = 0,
) -> Car:
    """Append a car to the back of ``out_lane`` and return it."""
    if not out_lane:
        raise ValueError(f"no lane to move to for car {car_entity}")
    cars = world.try_get(out_lane, LaneCars)
    if cars is None:
        raise KeyError(f"lane {out_lane} has no LaneCars while moving car {car_entity}")

    last = cars.last
    if last is not None and (last.position - last.length) < position:
        log.error("adding car %s to lane would cause a crash!", car_entity)
        position = 0.0
        speed = 0.0
        target_speed = 0.0

    car = Car(
        position=position,
        length=PLACEHOLDER_CAR_LENGTH,
        mass=PLACEHOLDER_CAR_MASS,
        speed=speed,
        target_speed=target_speed,
        state=state,
        eol_state=eol_state,
        reservation=reservation,
        next_lane=out_lane,
    )
    cars.add(car, car_entity)
    return car


def road_from_lane(world: World, lane: EntityId) -> Optional[EntityId]:
    """The road a lane belongs to."""
    return world.get(lane, Lane).road


def intersection_from_lane(world: World, lane: EntityId) -> Optional[EntityId]:
    """The intersection owning the lane's road, or None for ordinary roads."""
    return world.parent(road_from_lane(world, lane))