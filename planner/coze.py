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


"""Client for the Coze workflow API that writes travel itineraries."""

import json
import logging
import time
from typing import Callable, Optional

import requests

from planner.base import PlanGenerationError, PlanRequest

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.coze.cn"
STATUS_POLL_ATTEMPTS = 70
STATUS_POLL_INTERVAL_SECONDS = 1.0


class CozeWorkflowClient:
    def __init__(
        self,
        api_key: str,
        workflow_id: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = 30.0,
        poll_attempts: int = STATUS_POLL_ATTEMPTS,
        poll_interval: float = STATUS_POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("Coze API key is required")
        self.api_key = api_key
        self.workflow_id = workflow_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def generate(self, request: PlanRequest) -> str:
        response = self.session.post(
            f"{self.base_url}/v1/workflow/run",
            json={"workflow_id": self.workflow_id, "parameters": request.as_parameters()},
            headers=self._headers(),
            timeout=self.timeout,
        )
        if not response.ok:
            raise PlanGenerationError(
                f"Coze workflow run failed: {response.status_code} - {response.text[:300]}"
            )
        data = response.json().get("data")

        # The run either answers synchronously with a JSON string carrying
        # `output`, or hands back an execute_id to poll.
        if isinstance(data, str):
            try:
                parsed = json.loads(data)
            except json.JSONDecodeError as exc:
                raise PlanGenerationError("Coze returned unparseable workflow data") from exc
            output = parsed.get("output") if isinstance(parsed, dict) else None
            if isinstance(output, str) and output:
                return output
            execute_id = None
        elif isinstance(data, dict):
            execute_id = data.get("execute_id")
        else:
            execute_id = None

        if not execute_id:
            raise PlanGenerationError("Coze response had neither output nor execute_id")
        logger.info("Coze execute_id=%s, polling for result", execute_id)
        return self._poll(execute_id)

    def _poll(self, execute_id: str) -> str:
        for attempt in range(1, self.poll_attempts + 1):
            self.sleep(self.poll_interval)
            try:
                response = self.session.get(
                    f"{self.base_url}/v1/workflow/status",
                    params={"execute_id": execute_id},
                    headers=self._headers(),
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                logger.warning("Coze status poll %d failed: %s", attempt, exc)
                continue
            if not response.ok:
                continue
            body = response.json()
            if body.get("code") != 0:
                continue
            data = body.get("data") or {}
            status = data.get("status")
            if status == "success":
                plan_text = (data.get("outputs") or {}).get("planText")
                if not plan_text:
                    raise PlanGenerationError("Coze workflow succeeded without plan text")
                return plan_text
            if status == "failed":
                raise PlanGenerationError("Coze workflow execution failed")
        raise PlanGenerationError(
            f"Coze workflow timed out after {self.poll_attempts} status checks"
        )
