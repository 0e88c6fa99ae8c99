"""Per-lane driving behaviour: target speeds, driving states and acceleration."""

from __future__ import annotations

import logging
from itertools import pairwise
from typing import Iterable, Optional

from trafficsim.lanes import min_distance_for_speed
from trafficsim.model import (
    ACCELERATION_FORCE,
    BREAK_FORCE,
    HARD_BREAK_FORCE,
    Car,
    CarState,
    EndOfLaneState,
    EntityId,
    Lane,
    LaneCars,
)
from trafficsim.world import World

log = logging.getLogger(__name__)

_NOTHING_AHEAD = 1000.0 * 1000.0

_WAITING_STATES = (
    EndOfLaneState.WAIT_FOR_INTERSECTION,
    EndOfLaneState.RESERVE_INTERSECTION,
    EndOfLaneState.WAIT_FOR_PROTECTED_INTERSECTION,
)


def set_target_speed(
    car: Car,
    lane: Lane,
    next_position: float,
    next_speed: float,
    next_state: CarState,
) -> None:
    """Set a car's target speed from the car (or gap) in front of it."""
    if car.state is CarState.CRASHED:
        return

    distance = next_position - car.position
    min_distance = min_distance_for_speed(car.speed)
    target = lane.max_speed

    if distance < 0:
        log.error(
            "crash happened! (distance = %.2f, position = %.2f, next_position = %.2f, "
            "speed = %.2f, target_speed = %.2f)",
            distance, car.position, next_position, car.speed, car.target_speed,
        )
        car.speed = 0.0
        car.state = CarState.CRASHED
        return
    if distance < min_distance:
        if next_state in (CarState.BREAKING, CarState.BREAKING_HARD):
            target = 0.0
        else:
            target = next_speed

    target = min(target, lane.max_speed)

    # Waiting for the intersection means stopping, whatever is in front.
    if car.eol_state in _WAITING_STATES:
        target = 0.0

    car.target_speed = target


def _next_car(world: World, lane: Lane, car: Car):
    """Find the car ahead of the front car and the offset to add to its position."""
    next_lane: Optional[EntityId] = lane.next
    next_data = world.try_get(next_lane, Lane)
    intersection = False
    if next_data is None:
        # An intersection: follow the lane the car has chosen.
        intersection = True
        if car.next_lane:
            next_lane = car.next_lane
            next_data = world.get(next_lane, Lane)
    if next_data is None:
        return None, None, 0.0

    ahead = world.get(next_lane, LaneCars)
    if ahead.last is not None:
        return next_data, ahead.last, 0.0
    if intersection:
        # Look one lane further so a short turn lane does not hide a car behind it.
        beyond = world.try_get(next_data.next, LaneCars)
        if beyond is not None and beyond.last is not None:
            return next_data, beyond.last, next_data.length
    return next_data, None, 0.0


def set_target_speeds(world: World, lane_entity: EntityId) -> None:
    """Set the target speed of every car on a lane."""
    lane = world.get(lane_entity, Lane)
    cars = world.get(lane_entity, LaneCars)
    if not cars:
        return

    front = cars[0]
    next_data, next_car, offset = _next_car(world, lane, front)

    if next_car is not None:
        next_position = next_car.position - next_car.length / 2 + offset + lane.length
        set_target_speed(front, lane, next_position, next_car.speed, next_car.state)
    else:
        set_target_speed(front, lane, _NOTHING_AHEAD, _NOTHING_AHEAD, CarState.DRIVING)

    if next_data is not None:
        # Approaching the next lane: slow down to its speed limit.
        if lane.length - front.position < min_distance_for_speed(front.speed):
            front.target_speed = min(front.target_speed, next_data.max_speed)

    if front.target_speed == 0 and front.eol_state is EndOfLaneState.MOVE_ON_INTERSECTION:
        log.error("car is stopping while moving on intersection")

    for ahead, car in pairwise(cars):
        set_target_speed(car, lane, ahead.position - ahead.length, ahead.speed, ahead.state)


def set_driving_state(cars: Iterable[Car]) -> None:
    """Set each car's driving state from its speed and target speed."""
    for car in cars:
        if car.state is CarState.CRASHED:
            continue
        if car.target_speed < car.speed:
            car.state = CarState.BREAKING
        elif car.target_speed > car.speed:
            car.state = CarState.ACCELERATING
        else:
            car.state = CarState.DRIVING
        if car.speed - car.target_speed > 1:
            car.state = CarState.BREAKING_HARD


def accelerate_cars(cars: Iterable[Car], delta_time: float) -> None:
    """Change each car's speed towards its target according to its driving state."""
    accelerate = ACCELERATION_FORCE * delta_time
    brake = BREAK_FORCE * delta_time
    brake_hard = HARD_BREAK_FORCE * delta_time

    for index, car in enumerate(cars):
        if car.state is CarState.CRASHED:
            continue

        if car.state is CarState.ACCELERATING:
            car.speed += accelerate / car.mass
            if car.speed > car.target_speed:
                car.speed = car.target_speed
                car.state = CarState.DRIVING
        elif car.state in (CarState.BREAKING, CarState.BREAKING_HARD):
            force = brake if car.state is CarState.BREAKING else brake_hard
            car.speed -= force / car.mass
            if car.speed < car.target_speed:
                car.speed = car.target_speed
                car.state = CarState.DRIVING

        if car.speed <= 0:
            if car.state is not CarState.STOPPED and car.eol_state is EndOfLaneState.ON_INTERSECTION:
                log.error("car %d stopped on intersection", index)
            car.state = CarState.STOPPED
            car.speed = 0.0