"""Command line entry point: load a road network, populate it with cars and run it."""

from __future__ import annotations

import argparse
import json
import logging
import random
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type, TypeVar, Union

from trafficsim.lanes import add_car_to_lane, intersection_from_lane
from trafficsim.model import (
    Car,
    Corner,
    Direction,
    EntityId,
    Intersection,
    Lane,
    LaneCars,
    Road,
    RoadConnect,
)
from trafficsim.network import Network
from trafficsim.simulation import DEFAULT_DELTA_TIME, Color, Simulation
from trafficsim.transform import Position, Rotation
from trafficsim.world import World

DEFAULT_NETWORK = "etc/assets/network.json"
DEFAULT_STEPS = 600

_DIRECTIONS = {direction.name.lower(): direction for direction in Direction}

V = TypeVar("V", Position, Rotation)


def _vector(value: Optional[Sequence[float]], kind: Type[V]) -> Optional[V]:
    if value is None:
        return None
    if len(value) != 3:
        raise ValueError(f"expected three coordinates, got {value!r}")
    x, y, z = value
    return kind(float(x), float(y), float(z))


def _connect(spec: Mapping[str, Any], names: Dict[str, EntityId]) -> RoadConnect:
    name = spec.get("road")
    if name not in names:
        raise ValueError(f"unknown road {name!r}")
    edge = int(spec.get("edge", 0))
    if edge not in (0, 1):
        raise ValueError(f"edge must be 0 or 1, got {edge}")
    return RoadConnect(names[name], edge)


def _build_network(world: World, data: Mapping[str, Any]) -> Network:
    network = Network(world)
    names: Dict[str, EntityId] = {}
    links = []

    for spec in data.get("roads", []):
        name = spec.get("name")
        if name is None:
            raise ValueError("road without a name")
        if name in names:
            raise ValueError(f"duplicate road {name!r}")
        road = Road(
            float(spec.get("length", 0.0)),
            float(spec.get("lane_width", 0.0)),
            float(spec.get("max_speed", 0.0)),
            bool(spec.get("corner", False)),
            bool(spec.get("invert_corner", False)),
        )
        entity = network.add_road(
            road,
            _vector(spec.get("position"), Position),
            _vector(spec.get("rotation"), Rotation),
        )
        names[name] = entity
        if "next" in spec:
            links.append((entity, spec["next"]))

    for entity, spec in links:
        world.get(entity, Road).next = _connect(spec, names)

    for spec in data.get("intersections", []):
        roads = [RoadConnect() for _ in Direction]
        for key, connect in spec.get("roads", {}).items():
            direction = _DIRECTIONS.get(key)
            if direction is None:
                raise ValueError(f"unknown direction {key!r}")
            roads[direction] = _connect(connect, names)
        network.add_intersection(
            Intersection(
                roads,
                float(spec.get("lane_width", 0.0)),
                float(spec.get("max_speed", 0.0)),
            ),
            _vector(spec.get("position"), Position),
            _vector(spec.get("rotation"), Rotation),
        )

    network.finalize()
    return network


def load_network(world: World, path: Union[str, Path]) -> Network:
    """Build roads and intersections described by a JSON file into ``world``."""
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("network description must be a JSON object")
    return _build_network(world, data)


def populate_lanes(world: World, rng: random.Random) -> List[EntityId]:
    """Put one car near the start of every straight lane outside intersections."""
    created = []
    for lane, _data in list(world.query(Lane)):
        if world.has(lane, Corner):
            continue
        if intersection_from_lane(world, lane) is not None:
            continue
        car_entity = world.entity()
        world.set(car_entity, Car())
        world.set(car_entity, Color(1.0, 0.0, 1.0))
        add_car_to_lane(world, lane, car_entity, float(rng.randrange(5)))
        created.append(car_entity)
    return created


def _summary(world: World) -> Counter:
    return Counter(car.state for _entity, cars in world.query(LaneCars) for car in cars)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="trafficsim", description="Simulate cars driving through a road network."
    )
    parser.add_argument("--network", default=DEFAULT_NETWORK, help="network description (JSON)")
    parser.add_argument("--steps", type=int, default=DEFAULT_STEPS, help="frames to simulate")
    parser.add_argument("--seed", type=int, default=None, help="random seed")
    parser.add_argument(
        "--delta-time", type=float, default=DEFAULT_DELTA_TIME, help="seconds per frame"
    )
    args = parser.parse_args(argv)
    if args.steps < 0:
        parser.error("--steps must not be negative")

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")

    world = World()
    try:
        load_network(world, args.network)
    except (OSError, ValueError, KeyError) as error:
        print(f"trafficsim: {error}", file=sys.stderr)
        return 1

    rng = random.Random(args.seed)
    populate_lanes(world, rng)
    simulation = Simulation(world, rng, args.delta_time)
    for _ in range(args.steps):
        simulation.step()

    counts = _summary(world)
    print(f"steps: {args.steps}")
    print(f"cars: {sum(counts.values())}")
    for state, count in sorted(counts.items(), key=lambda item: item[0].value):
        print(f"{state.name.lower()}: {count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())