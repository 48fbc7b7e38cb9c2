# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


from planner.base import PlanRequest

PLAN_PROMPT_TEMPLATE = """You are an experienced travel planner.
Write a day-by-day itinerary for a {days}-day trip from {origin} to {destination}
starting on {date}.

Traveller interests: {preferences}

For each day list the morning, afternoon and evening activities, suggested
local food, and transport between stops. Finish with a short packing and
budget note. Answer in plain text without markdown tables."""


def make_plan_prompt(request: PlanRequest) -> str:
    return PLAN_PROMPT_TEMPLATE.format(
        days=request.days,
        origin=request.from_location,
        destination=request.to_location,
        date=request.travel_date,
        preferences=", ".join(request.preferences) or "no particular preference",
    )
