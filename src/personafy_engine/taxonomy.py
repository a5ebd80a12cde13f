# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Canonical fact-key taxonomy.

Facts extracted by older importers use flat names (``waist_size``) or early
dotted variants (``apparel.pants.waist_in``). Every comparison in the engine
goes through :func:`normalize_fact_key` or :func:`normalize_field_pattern`
first, so fact keys, request patterns and rule patterns always meet in the
same canonical namespace.
"""

from __future__ import annotations

from personafy_engine.types import WILDCARD_SUFFIX

LEGACY_FACT_KEY_MAP: dict[str, str] = {
    # Shopping
    "waist_size": "apparel.pants.waist",
    "inseam": "apparel.pants.inseam",
    "shirt_size": "apparel.shirt.size",
    "shoe_size": "apparel.shoe.size",
    "fit_preference": "apparel.fit_preference",
    "material_likes": "apparel.material_likes",
    "material_dislikes": "apparel.material_dislikes",
    "preferred_brands": "apparel.preferred_brands",
    "clothing_budget": "budget.monthly_clothing",
    "brand_loyalty": "shopping.brand_loyalty",
    "price_sensitivity": "shopping.price_sensitivity",
    "seasonal_patterns": "shopping.seasonal_patterns",
    "return_frequency": "shopping.return_frequency",
    # Travel
    "travel_frequency": "travel.frequency",
    "hotel_preference": "hotel.room_preference",
    "hotel_dislikes": "hotel.room_dislikes",
    "seat_preference": "flight.seat_preference",
    "travel_benefits": "travel.loyalty_programs",
    "frequent_destinations": "travel.favorite_destinations",
    "hotel_chain": "travel.hotel_chain",
    "travel_style": "travel.travel_style",
    "trip_frequency": "travel.trip_frequency",
    # Food & Dining
    "dietary_restrictions": "dietary.restrictions",
    "food_allergies": "dietary.allergies",
    "cuisine_preferences": "food.favorite_cuisines",
    "coffee_preferences": "food.coffee_preferences",
    "cooking_frequency": "food.cooking_frequency",
    "meal_prep": "food.meal_prep",
    "restaurant_budget": "food.restaurant_budget",
    "cuisine_exploration": "food.cuisine_exploration",
    # Work
    "work_tools": "work.tools",
    "communication_style": "work.communication_style",
    # Fitness
    "exercise_frequency": "fitness.frequency",
    "fitness_goals": "fitness.goal",
    "running_shoes": "fitness.running_shoes",
    "fitness_apps": "fitness.apps",
    "workout_frequency": "fitness.workout_frequency",
    "equipment_owned": "fitness.equipment_owned",
    "competition": "fitness.competition",
    # Gift Giving
    "partner_interests": "gifts.partner_interests",
    "mom_interests": "gifts.mom_interests",
    "gift_budget": "budget.gift_range",
    "budget_per_occasion": "gifts.budget_per_occasion",
    "gift_style": "gifts.style",
    # Entertainment
    "streaming_services": "entertainment.streaming_services",
    "music_genres": "entertainment.music_genres",
    "favorite_shows": "entertainment.favorite_shows",
    "favorite_movies": "entertainment.favorite_movies",
    "podcast_preferences": "entertainment.podcast_preferences",
    "gaming_platforms": "entertainment.gaming_platforms",
    "gaming_genres": "entertainment.gaming_genres",
    # Home & Living
    "furniture_style": "home.furniture_style",
    "home_size": "home.size",
    "pets": "home.pets",
    "pet_breeds": "home.pet_breeds",
    "garden_preferences": "home.garden_preferences",
    "smart_devices": "home.smart_devices",
    # Health & Wellness
    "health_dietary_restrictions": "health.dietary_restrictions",
    "allergies": "health.allergies",
    "supplements": "health.supplements",
    "sleep_schedule": "health.sleep_schedule",
    "medical_preferences": "health.medical_preferences",
    "mental_health": "health.mental_health",
    # Dotted variants seen in older fixtures
    "apparel.pants.waist_in": "apparel.pants.waist",
    "apparel.pants.inseam_in": "apparel.pants.inseam",
    "apparel.pants.fit_preferences": "apparel.fit_preference",
    "apparel.shirts.size": "apparel.shirt.size",
    "apparel.shoes.size": "apparel.shoe.size",
}


def normalize_fact_key(key: str) -> str:
    """
    Map a legacy or alias fact key to its canonical dotted key.

    Unknown keys pass through unchanged.

    Example::

        >>> normalize_fact_key("waist_size")
        'apparel.pants.waist'
        >>> normalize_fact_key("apparel.pants.waist")
        'apparel.pants.waist'
    """
    return LEGACY_FACT_KEY_MAP.get(key, key)


def is_wildcard(pattern: str) -> bool:
    """Return True if ``pattern`` ends with the ``.*`` wildcard suffix."""
    return pattern.endswith(WILDCARD_SUFFIX)


def wildcard_prefix(pattern: str) -> str:
    """Strip the wildcard suffix from ``pattern``."""
    return pattern[: -len(WILDCARD_SUFFIX)]


def normalize_field_pattern(pattern: str) -> str:
    """
    Normalize a request or rule field pattern.

    For wildcard patterns only the prefix is normalized, so ``waist_size.*``
    becomes ``apparel.pants.waist.*``.
    """
    if is_wildcard(pattern):
        prefix = wildcard_prefix(pattern)
        normalized_prefix = normalize_fact_key(prefix)
        if normalized_prefix == prefix:
            return pattern
        return normalized_prefix + WILDCARD_SUFFIX
    return normalize_fact_key(pattern)
