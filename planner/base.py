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


import logging
from dataclasses import dataclass, field
from typing import List, Protocol

logger = logging.getLogger(__name__)


class PlanGenerationError(Exception):
    """Raised when a provider fails to produce a usable itinerary."""


@dataclass
class PlanRequest:
    from_location: str
    to_location: str
    travel_date: str
    days: int
    preferences: List[str] = field(default_factory=list)

    def as_parameters(self) -> dict:
        return {
            "from": self.from_location,
            "to": self.to_location,
            "date": self.travel_date,
            "days": self.days,
            "preferences": list(self.preferences),
        }


class PlanGenerator(Protocol):
    def generate(self, request: PlanRequest) -> str:
        """Returns the itinerary text or raises PlanGenerationError."""
        ...


class OfflinePlanGenerator:
    """Deterministic itinerary used when no provider is configured."""

    def generate(self, request: PlanRequest) -> str:
        interests = ", ".join(request.preferences) or "sightseeing"
        lines = [
            f"{request.days}-day trip from {request.from_location} "
            f"to {request.to_location}, departing {request.travel_date}.",
            f"Focus: {interests}.",
        ]
        for day in range(1, request.days + 1):
            if day == 1:
                lines.append(f"Day {day}: travel to {request.to_location} and settle in.")
            elif day == request.days:
                lines.append(f"Day {day}: free morning, return to {request.from_location}.")
            else:
                lines.append(f"Day {day}: explore {request.to_location} ({interests}).")
        return "\n".join(lines)
