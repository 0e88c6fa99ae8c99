# trafficsim

A small road traffic simulation. Cars move "on rails" along lanes: each car
is described by a single position along its current lane, and its behaviour
comes down to choosing a speed.

Roads hold two lanes, one for each direction. Roads can be straight or
corners, and are joined either to each other or through intersections of two,
three or four roads. At an intersection a car picks a left, straight or right
movement and takes a reservation; the intersection admits reservations in
order, so only one car (or, with a traffic light, one lane) uses it at a time.
Lanes that feed an intersection with several ways out get a traffic light that
goes green and then orange once the lane has acquired the intersection, and
back to red when it releases it.

Cars keep a safe distance that grows with their speed, follow the car in front,
slow down before sharp corners, and brake hard when needed. To keep the work
per frame low, each lane's driving decisions are made only on one tick out of
eight, spread across lanes by entity id.

## Installation

```
pip install .
```

The package has no runtime dependencies and needs Python 3.10 or later. To
run the tests:

```
pip install .[test]
pytest
```

## Command line

```
trafficsim [--network PATH] [--steps N] [--seed SEED] [--delta-time SECONDS]
```

- `--network` – JSON network description (default `etc/assets/network.json`).
- `--steps` – number of frames to simulate (default 600; must not be negative).
- `--seed` – random seed for car placement and turn choices.
- `--delta-time` – seconds per frame (default 0.016).

The command loads the network, puts one car near the start of every straight
lane that is not part of an intersection, runs the given number of frames and
prints a summary: the number of steps, the number of cars, and how many cars
are in each driving state (`accelerating`, `driving`, `breaking`, …). If the
network file cannot be read or is invalid, it prints an error and exits with
status 1.

### Network file

```json
{
  "roads": [
    {"name": "north", "length": 100, "lane_width": 4, "max_speed": 1,
     "position": [0, 0, -60], "rotation": [0, 1.5708, 0]},
    {"name": "south", "length": 100, "lane_width": 4, "max_speed": 1,
     "position": [0, 0, 60], "rotation": [0, 1.5708, 0]}
  ],
  "intersections": [
    {"lane_width": 4, "max_speed": 1, "position": [0, 0, 0],
     "roads": {"top": {"road": "north", "edge": 1},
               "bottom": {"road": "south", "edge": 0}}}
  ]
}
```

Each road needs a unique `name`; `length`, `lane_width`, `max_speed`,
`corner`, `invert_corner`, `position` and `rotation` (three numbers each) are
optional. A road may have `"next": {"road": NAME, "edge": 0 or 1}` to continue
into another road. An intersection lists its incoming roads under the
directions `top`, `right`, `bottom` and `left`. Unknown road names or
directions, duplicate names and edges other than 0 or 1 are rejected.

## Library use

- `trafficsim.model` holds the data: `Car`, `Lane`, `LaneCars`, `Road`,
  `RoadLanes`, `RoadConnect`, `Corner`, `Intersection`, `IntersectionRoads`,
  `IntersectionMovement`, `LaneTrafficLight`, `TrafficLight`, and the enums
  `CarState`, `EndOfLaneState`, `TrafficLightState`, `Direction` and
  `Connection`.
- `trafficsim.world.World` is a minimal entity store: create entities with
  `entity()`, attach components with `set()`, read them with `get()`,
  `try_get()` and `has()`, iterate with `query()`, and react to components
  being set with `on_set()`.
- `trafficsim.network.Network` builds roads and intersections
  (`add_road`, `add_intersection`) and wires their lanes together and
  computes their transforms (`finalize`).
- `trafficsim.lanes` has helpers such as `add_car_to_lane`,
  `min_distance_for_speed`, `find_next_lane` and `car_fits_in_destination_lane`.
- `trafficsim.driving` sets target speeds, driving states and acceleration.
- `trafficsim.transform` has `Position`, `Rotation`, `Transform` and small 4x4
  matrix helpers (`identity`, `translate`, `rotate`, `apply`).
- `trafficsim.simulation.Simulation` advances everything one frame at a time
  with `step()`.
- `trafficsim.main` has `load_network`, `populate_lanes` and `main`.

A short session:

```python
import random

from trafficsim.main import load_network, populate_lanes
from trafficsim.simulation import Simulation
from trafficsim.world import World

world = World()
load_network(world, "network.json")

rng = random.Random(1)
populate_lanes(world, rng)

sim = Simulation(world, rng, 0.016)
for _ in range(600):
    sim.step()
```

Reservations must be released in the order they were taken; releasing any
other one raises `trafficsim.model.ReservationError`. Problems during the
simulation itself, such as a crash or a car with nowhere to go, are reported
through the `logging` module.

## What it does not do

There is no window, renderer or web interface. The simulation gives each car
entity a `Transform`, a copy of its `Car` and a colour for its state, but
nothing draws them; the command only prints a text summary at the end.