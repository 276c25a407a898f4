"""
Daily portion calculation.

Uses the resting energy requirement (RER = 70 * kg^0.75) scaled by a life-stage
multiplier, converted to grams through the food's energy density.
"""

import copy
from typing import Optional

from .models import ActivityLevel, FeedingSchedule, PetProfile, SexStatus

RER_FACTOR = 70.0
RER_EXPONENT = 0.75

PUPPY_MULTIPLIER = 3.0  # under 4 months
JUNIOR_MULTIPLIER = 2.0  # 4-12 months
NEUTERED_MULTIPLIER = 1.6
INTACT_MULTIPLIER = 1.8
SEDENTARY_MULTIPLIER = 1.2
ACTIVE_BONUS = 0.2
ACTIVE_CAP = 2.0


def energy_multiplier(age_months: int, sex_status: SexStatus, activity_level: ActivityLevel) -> float:
    """Return the RER multiplier for a life stage."""
    if age_months < 4:
        return PUPPY_MULTIPLIER
    if age_months <= 12:
        return JUNIOR_MULTIPLIER

    k = NEUTERED_MULTIPLIER if sex_status == SexStatus.NEUTERED else INTACT_MULTIPLIER
    if activity_level == ActivityLevel.SEDENTARY:
        k = SEDENTARY_MULTIPLIER
    elif activity_level == ActivityLevel.ACTIVE:
        k = min(k + ACTIVE_BONUS, ACTIVE_CAP)
    return k


def daily_grams(profile: PetProfile) -> float:
    """Unrounded daily requirement in grams; 0.0 for non-positive weight or density."""
    if profile.weight_kg <= 0 or profile.food_kcal_per_100g <= 0:
        return 0.0

    rer = RER_FACTOR * profile.weight_kg ** RER_EXPONENT
    k = energy_multiplier(profile.age_months, profile.sex_status, profile.activity_level)
    return max(0.0, rer * k / profile.food_kcal_per_100g * 100.0)


def compute_daily_portion(profile: PetProfile) -> int:
    """Daily requirement in whole grams."""
    return int(round(daily_grams(profile)))


def distribute(daily: float, enabled_schedule_count: int) -> int:
    """Per-meal share of ``daily`` grams, rounded to the nearest gram.

    Zero enabled schedules means nothing is fed.
    """
    if enabled_schedule_count <= 0 or daily <= 0:
        return 0
    return max(0, int(round(daily / enabled_schedule_count)))


def per_meal_portion(profile: PetProfile) -> int:
    """Grams each enabled schedule of ``profile`` should dispense."""
    return distribute(daily_grams(profile), len(profile.enabled_schedules))


def recalculated(profile: PetProfile) -> PetProfile:
    """Return a copy of ``profile`` with every derived portion refreshed.

    Enabled schedules get the per-meal share, disabled ones get 0, and the
    manual override is reset to the computed share. The input is not modified.
    """
    updated = copy.deepcopy(profile)
    share = per_meal_portion(updated)
    updated.computed_daily_portion_grams = compute_daily_portion(updated)
    for schedule in updated.schedules:
        schedule.portion_grams = share if schedule.enabled else 0
    updated.edited_portion_grams = share
    return updated


def dispatch_portion(profile: PetProfile, schedule: Optional[FeedingSchedule] = None) -> int:
    """Grams to dispense for one due schedule of ``profile``.

    A manual override wins; otherwise the per-meal share is computed fresh
    from the profile so stale stored values never reach the feeder.
    """
    if schedule is not None and not schedule.enabled:
        return 0
    if profile.edited_portion_grams > 0:
        return profile.edited_portion_grams
    return per_meal_portion(profile)
