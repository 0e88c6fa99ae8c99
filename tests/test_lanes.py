import pytest

from trafficsim.lanes import (
    add_car_to_lane,
    car_fits_in_destination_lane,
    find_next_lane,
    intersection_from_lane,
    min_distance_for_speed,
    road_from_lane,
    space_in_destination_lane,
    space_in_lane,
    wait_for_lane,
)
from trafficsim.model import (
    MAX_CARS_PER_LANE,
    MAX_WAIT_COUNT,
    PLACEHOLDER_CAR_LENGTH,
    PLACEHOLDER_CAR_MASS,
    Car,
    CarState,
    EndOfLaneState,
    IntersectionMovement,
    Lane,
    LaneCars,
    Road,
)
from trafficsim.world import World


class _FixedRng:
    def __init__(self, value):
        self.value = value

    def randrange(self, n):
        return self.value % n


def _lane(world, length=100.0, next_lane=None, road=None, parent=None):
    entity = world.entity(parent)
    world.set(entity, Lane(length=length, width=2.0, max_speed=1.0, next=next_lane, road=road))
    return entity


def test_min_distance_scales_with_speed_and_has_floor():
    assert min_distance_for_speed(1.0) == pytest.approx(40.0)
    assert min_distance_for_speed(0.0) == min_distance_for_speed(0.1)
    assert min_distance_for_speed(-3.0) == min_distance_for_speed(0.1)
    assert min_distance_for_speed(2.0) > min_distance_for_speed(1.0)


@pytest.mark.parametrize("turn", [0, 1, 2])
def test_find_next_lane_uses_random_choice(turn):
    movement = IntersectionMovement(intersection=1, lanes=(11, 12, 13))
    assert find_next_lane(movement, _FixedRng(turn)) == movement.lanes[turn]


def test_find_next_lane_falls_through_to_available_lane():
    assert find_next_lane(IntersectionMovement(1, (None, None, 7)), _FixedRng(0)) == 7
    assert find_next_lane(IntersectionMovement(1, (5, None, None)), _FixedRng(1)) == 5
    assert find_next_lane(IntersectionMovement(1, (None, 9, 4)), _FixedRng(0)) == 9


def test_find_next_lane_without_lanes_raises():
    with pytest.raises(ValueError):
        find_next_lane(IntersectionMovement(1, (None, None, None)), _FixedRng(0))


def test_space_in_empty_lane_is_length():
    world = World()
    lane = _lane(world, length=75.0)
    assert space_in_lane(world, lane) == 75.0


def test_space_in_lane_ends_at_last_car():
    world = World()
    lane = _lane(world)
    add_car_to_lane(world, lane, None, position=50.0)
    add_car_to_lane(world, lane, None, position=30.0)
    assert space_in_lane(world, lane) == pytest.approx(30.0 - PLACEHOLDER_CAR_LENGTH)


def test_space_in_destination_lane_looks_at_following_lane():
    world = World()
    dest = _lane(world, length=30.0)
    via = _lane(world, length=10.0, next_lane=dest)
    assert space_in_destination_lane(world, via) == 30.0


def test_car_fits_depends_on_cars_on_the_way():
    world = World()
    dest = _lane(world, length=20.0)
    via = _lane(world, length=200.0, next_lane=dest)
    car = Car(length=PLACEHOLDER_CAR_LENGTH)
    assert car_fits_in_destination_lane(world, via, car) is True
    for position in (150.0, 140.0, 130.0, 120.0, 110.0, 100.0):
        add_car_to_lane(world, via, None, position=position)
    assert car_fits_in_destination_lane(world, via, car) is False


def test_wait_for_lane_counts_up():
    car = Car(wait_count=3, next_lane=99)
    wait_for_lane(car, IntersectionMovement(1, (5, 6, 7)), _FixedRng(0))
    assert car.wait_count == 4
    assert car.next_lane == 99


def test_wait_for_lane_picks_new_lane_after_max_wait():
    car = Car(wait_count=MAX_WAIT_COUNT, next_lane=99)
    wait_for_lane(car, IntersectionMovement(1, (5, 6, 7)), _FixedRng(2))
    assert car.wait_count == 0
    assert car.next_lane == 7


def test_add_car_to_lane_fills_in_car():
    world = World()
    lane = _lane(world)
    car = add_car_to_lane(
        world, lane, 42, 12.0, 0.5, 0.8, CarState.DRIVING,
        EndOfLaneState.ON_INTERSECTION, 3,
    )
    cars = world.get(lane, LaneCars)
    assert len(cars) == 1
    assert cars[0] is car
    assert cars.entities == [42]
    assert (car.position, car.speed, car.target_speed) == (12.0, 0.5, 0.8)
    assert car.state is CarState.DRIVING
    assert car.eol_state is EndOfLaneState.ON_INTERSECTION
    assert car.reservation == 3
    assert car.next_lane == lane
    assert car.mass == PLACEHOLDER_CAR_MASS
    assert car.length == PLACEHOLDER_CAR_LENGTH


def test_add_car_that_would_crash_is_placed_at_start():
    world = World()
    lane = _lane(world)
    add_car_to_lane(world, lane, 1, position=10.0, speed=1.0)
    car = add_car_to_lane(world, lane, 2, position=20.0, speed=1.0, target_speed=1.0)
    assert (car.position, car.speed, car.target_speed) == (0.0, 0.0, 0.0)


def test_add_car_to_missing_lane_raises():
    world = World()
    with pytest.raises(ValueError):
        add_car_to_lane(world, None, 1)


def test_add_car_to_entity_without_lane_cars_raises():
    world = World()
    entity = world.entity()
    with pytest.raises(KeyError):
        add_car_to_lane(world, entity, 1)


def test_add_car_to_full_lane_raises():
    world = World()
    lane = _lane(world, length=1000.0)
    for i in range(MAX_CARS_PER_LANE):
        add_car_to_lane(world, lane, i, position=900.0 - i * 10)
    with pytest.raises(ValueError):
        add_car_to_lane(world, lane, 99, position=0.0)
    assert len(world.get(lane, LaneCars)) == MAX_CARS_PER_LANE


def test_road_and_intersection_from_lane():
    world = World()
    intersection = world.entity()
    road = world.entity(intersection)
    world.set(road, Road(length=4.0, lane_width=2.0))
    lane = _lane(world, road=road)
    assert road_from_lane(world, lane) == road
    assert intersection_from_lane(world, lane) == intersection


def test_lane_on_plain_road_has_no_intersection():
    world = World()
    road = world.entity()
    lane = _lane(world, road=road)
    orphan = _lane(world)
    assert intersection_from_lane(world, lane) is None
    assert intersection_from_lane(world, orphan) is None