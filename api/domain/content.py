# SPDX-License-Identifier: Apache-2.0

"""
Template-driven copy: food request appeals, impact stories, safety tips,
welcome and badge messages.

Functions take an optional ``random.Random`` so callers and tests can fix the
selection.
"""

import random
from typing import List, Dict, Any, Optional

MARKETING_DRAFT_COUNT = 3

_MARKETING_TEMPLATES = [
    "URGENT: We are currently in need of {quantity} of {food_type} to support local families. "
    "Your donation ensures no one goes hungry tonight. Every contribution makes an impact!",
    "Community Support Needed: Join us in our mission to provide {food_type} to those who need it most. "
    "We're looking to collect {quantity} this week. Together, we can strengthen our community!",
    "A small gesture can make a big difference. We're requesting {quantity} of {food_type} to bring hope "
    "and nourishment to individuals in need. Will you be their hero today?",
    "Help us bridge the gap! Our team is working hard to secure {quantity} of {food_type} for our food bank. "
    "Be a part of the solution and donate your surplus today through EcoBite!",
    "Did you know? By donating {quantity} of {food_type}, you're not just feeding people, you're also "
    "preventing carbon emissions from entering our atmosphere. Join our green movement!",
]

_IMPACT_STORIES = [
    "Impact Milestone!\n\nYour incredible commitment to EcoBite has led to {donations} donations, providing "
    "meals for {peopleFed} people! By rescuing food, you've also diverted {co2Saved}kg of CO2 from our "
    "environment. You're not just a donor; you're a climate hero!",
    "A Greener Future Starts with You!\n\nThrough your {donations} generous acts, you've made a tangible "
    "difference in the lives of {peopleFed} individuals. Beyond the meals, you've saved {co2Saved}kg of carbon "
    "emissions. Thank you for being a part of the EcoBite revolution!",
    "Community Champion Spotlight!\n\nYour {donations} contributions have directly nourished {peopleFed} "
    "community members. By preventing food waste, you've protected our planet from {co2Saved}kg of CO2 "
    "emissions. Your ripple effect of kindness is inspiring!",
    "Data-Driven Kindness!\n\nNumbers tell a powerful story: {donations} donations, {peopleFed} meals served, "
    "and {co2Saved}kg of CO2 saved. You are at the forefront of the fight against food waste and hunger!",
]

GENERAL_SAFETY_TIPS = [
    "Keep it cool! Always store perishables at or below 5°C (41°F).",
    "When in doubt, throw it out! Safety is our number one priority.",
    "Label everything! Clear expiry dates help our NGOs plan better.",
    "Wash your hands for at least 20 seconds before handling donations.",
    "FIFO: First In, First Out. Use older items before they reach expiry!",
]

FOOD_SAFETY_TIPS: Dict[str, List[str]] = {
    "Vegetables": [
        "Store leafy greens with a paper towel to absorb excess moisture.",
        "Keep tomatoes at room temperature for the best flavor and texture!",
    ],
    "Fruits": [
        "Keep apples away from other fruits as they release gases that speed up ripening.",
        "Don't wash berries until you're ready to eat or donate them to prevent mold.",
    ],
    "Bread": [
        "Keep bread in a cool, dry place. For longer storage, freezing is best!",
        "Slightly stale bread is perfect for croutons or breadcrumbs!",
    ],
    "Dairy Products": [
        "Keep dairy in the back of the fridge where it's coldest, not in the door.",
        "Hard cheeses can be frozen for up to 6 months!",
    ],
    "Prepared Meals": [
        "Reheat prepared meals to an internal temperature of 74°C (165°F).",
        "Cool cooked food quickly before refrigerating to prevent bacterial growth.",
    ],
}

_WELCOME_MESSAGES: Dict[str, List[str]] = {
    "individual": [
        "Welcome, {name}! Ready to turn your surplus into someone's meal?",
        "Hi {name}! Every small donation counts. Let's start reducing waste today!",
        "Glad you're here, {name}. Your kitchen is now a part of the global food rescue mission!",
    ],
    "restaurant": [
        "Welcome back, Chef {name}! Let's make sure your delicious surplus finds a good home.",
        "Business with a purpose! {name}, your commitment to zero-waste sets a great example.",
        "Ready to serve the community, {name}? Let's list those surplus items!",
    ],
    "ngo": [
        "Greetings, {name}! We've found some potential donations for your community today.",
        "Hello {name}! Thank you for being the bridge between surplus and those in need.",
        "Welcome, {name}. Let's get those appeals drafted and food delivered!",
    ],
    "shelter": [
        "Woof! Welcome, {name}. Let's find some treats for our furry friends!",
        "Hi {name}! Ready to rescue some food for the animals today?",
        "Welcome back, {name}! Let's ensure no bowl goes empty.",
    ],
}

# Display names used by the web client
_ROLE_ALIASES = {
    "animal shelter": "shelter",
}

DEFAULT_WELCOME = "Welcome to EcoBite, {name}! Let's make a difference today."

BADGE_MESSAGES: Dict[str, str] = {
    "First Step": "You've officially joined the movement! Your first donation is the first step towards a zero-waste world.",
    "Helping Hand": "Five donations in! Our partners can count on your steady support.",
    "Food Rescuer": "Ten rescues and counting. Good food is reaching people instead of landfill.",
    "Eco Warrior": "Twenty-five donations! Your environmental footprint just got a lot lighter.",
    "Planet Saver": "Fifty donations. You are leading the community by example.",
    "Century Saver": "One. Hundred. Donations. You are an absolute legend in the fight against food waste and hunger!",
}


def _rng(rng: Optional[random.Random]) -> random.Random:
    return rng or random.Random()


def marketing_drafts(food_type: str, quantity: str, rng: Optional[random.Random] = None) -> List[str]:
    """Three distinct appeal drafts for a food request."""
    chosen = _rng(rng).sample(_MARKETING_TEMPLATES, MARKETING_DRAFT_COUNT)
    return [template.format(food_type=food_type, quantity=quantity) for template in chosen]


def impact_story(stats: Dict[str, Any], rng: Optional[random.Random] = None) -> str:
    values = {key: stats.get(key) or 0 for key in ("donations", "peopleFed", "co2Saved")}
    return _rng(rng).choice(_IMPACT_STORIES).format(**values)


def safety_tip(food_type: Optional[str] = None, rng: Optional[random.Random] = None) -> str:
    """Food-specific tip when one exists, otherwise a general one."""
    tips = FOOD_SAFETY_TIPS.get(food_type or "", GENERAL_SAFETY_TIPS)
    return _rng(rng).choice(tips)


def welcome_message(name: str, role: str, rng: Optional[random.Random] = None) -> str:
    key = (role or "").strip().lower()
    key = _ROLE_ALIASES.get(key, key)
    messages = _WELCOME_MESSAGES.get(key)
    if not messages:
        return DEFAULT_WELCOME.format(name=name)
    return _rng(rng).choice(messages).format(name=name)


def badge_message(badge_name: str) -> str:
    return BADGE_MESSAGES.get(
        badge_name,
        f"Incredible achievement! You've earned the {badge_name} badge for your outstanding dedication to social impact."
    )
