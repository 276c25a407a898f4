"""Tests for the daily portion calculation."""

import pytest

from pawfeeds.models import ActivityLevel, FeedingSchedule, PetProfile, SexStatus
from pawfeeds.portion import (
    compute_daily_portion,
    daily_grams,
    dispatch_portion,
    distribute,
    energy_multiplier,
    per_meal_portion,
    recalculated,
)


def _adult(**kwargs) -> PetProfile:
    values = dict(age_months=24, weight_kg=10.0, food_kcal_per_100g=350.0)
    values.update(kwargs)
    return PetProfile(**values)


def test_adult_neutered_normal_dog():
    assert compute_daily_portion(_adult()) == 180


@pytest.mark.parametrize(
    "age,sex,activity,expected",
    [
        (3, SexStatus.MALE, ActivityLevel.ACTIVE, 3.0),
        (4, SexStatus.NEUTERED, ActivityLevel.NORMAL, 2.0),
        (12, SexStatus.FEMALE, ActivityLevel.SEDENTARY, 2.0),
        (13, SexStatus.NEUTERED, ActivityLevel.NORMAL, 1.6),
        (24, SexStatus.MALE, ActivityLevel.NORMAL, 1.8),
        (24, SexStatus.FEMALE, ActivityLevel.SEDENTARY, 1.2),
        (24, SexStatus.NEUTERED, ActivityLevel.ACTIVE, 1.8),
        (24, SexStatus.MALE, ActivityLevel.ACTIVE, 2.0),
    ],
)
def test_energy_multiplier(age, sex, activity, expected):
    assert energy_multiplier(age, sex, activity) == pytest.approx(expected)


@pytest.mark.parametrize("weight,kcal", [(0, 350), (-3, 350), (10, 0), (10, -1)])
def test_non_positive_inputs_give_zero(weight, kcal):
    assert compute_daily_portion(_adult(weight_kg=weight, food_kcal_per_100g=kcal)) == 0


def test_distribute_conserves_daily_total():
    daily = daily_grams(_adult())
    for count in range(1, 6):
        share = distribute(daily, count)
        assert share >= 0
        assert abs(share * count - daily) <= count * 0.5


def test_distribute_without_schedules():
    assert distribute(180.0, 0) == 0


def test_recalculated_refreshes_copy_only():
    profile = _adult(
        schedules=[
            FeedingSchedule(name="Breakfast", portion_grams=5),
            FeedingSchedule(name="Snack", enabled=False, portion_grams=5),
            FeedingSchedule(name="Dinner"),
        ]
    )
    updated = recalculated(profile)

    assert updated.computed_daily_portion_grams == 180
    assert [s.portion_grams for s in updated.schedules] == [90, 0, 90]
    assert updated.edited_portion_grams == 90
    assert profile.schedules[0].portion_grams == 5
    assert profile.computed_daily_portion_grams == 0


def test_dispatch_portion_prefers_manual_override():
    breakfast = FeedingSchedule(name="Breakfast")
    profile = _adult(schedules=[breakfast, FeedingSchedule(name="Dinner")])
    assert per_meal_portion(profile) == 90
    assert dispatch_portion(profile, breakfast) == 90

    profile.edited_portion_grams = 75
    assert dispatch_portion(profile, breakfast) == 75


def test_dispatch_portion_for_disabled_schedule():
    snack = FeedingSchedule(name="Snack", enabled=False)
    profile = _adult(schedules=[snack], edited_portion_grams=40)
    assert dispatch_portion(profile, snack) == 0
