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
from google import genai
from google.genai import types
from planner import prompts
from planner.base import PlanGenerationError, PlanRequest

logger = logging.getLogger(__name__)

PLAN_MAX_OUTPUT_TOKENS = 4000


def call_predict(
    query: str,
    model="gemini-3-flash-preview",
    api_key: str | None = None,
    temperature: float = 0.7,
) -> str:
    if not api_key:
        raise PlanGenerationError("Gemini API key is not configured")

    client = genai.Client(api_key=api_key)

    response = client.models.generate_content(
        model=model,
        contents=query,
        config=types.GenerateContentConfig(
            temperature=temperature, max_output_tokens=PLAN_MAX_OUTPUT_TOKENS
        ),
    )
    if not response.text:
        raise PlanGenerationError("Gemini returned an empty response")
    return response.text


class GeminiPlanGenerator:
    def __init__(self, api_key: str, model: str = "gemini-3-flash-preview"):
        self.api_key = api_key
        self.model = model

    def generate(self, request: PlanRequest) -> str:
        prompt = prompts.make_plan_prompt(request)
        logger.info(
            "Calling Gemini %s for %s -> %s",
            self.model,
            request.from_location,
            request.to_location,
        )
        return call_predict(prompt, model=self.model, api_key=self.api_key)
