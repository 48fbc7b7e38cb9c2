import json
import unittest
from unittest.mock import MagicMock, patch

from planner import prompts
from planner.base import OfflinePlanGenerator, PlanGenerationError, PlanRequest
from planner.coze import CozeWorkflowClient
from planner.gemini import GeminiPlanGenerator


def _response(payload, ok=True, status=200):
    response = MagicMock()
    response.ok = ok
    response.status_code = status
    response.json.return_value = payload
    response.text = json.dumps(payload)
    return response


REQUEST = PlanRequest(
    from_location="Beijing",
    to_location="Xi'an",
    travel_date="2030-04-01",
    days=3,
    preferences=["history", "food"],
)


class CozeWorkflowClientTests(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.sleeps = []
        self.client = CozeWorkflowClient(
            "coze-key",
            "wf-1",
            poll_attempts=3,
            sleep=self.sleeps.append,
            session=self.session,
        )

    def test_synchronous_output(self):
        self.session.post.return_value = _response(
            {"code": 0, "data": json.dumps({"output": "Day 1: Terracotta Army"})}
        )
        self.assertEqual(self.client.generate(REQUEST), "Day 1: Terracotta Army")
        body = self.session.post.call_args.kwargs["json"]
        self.assertEqual(body["workflow_id"], "wf-1")
        self.assertEqual(body["parameters"]["from"], "Beijing")
        self.assertEqual(body["parameters"]["preferences"], ["history", "food"])

    def test_polls_execute_id_until_success(self):
        self.session.post.return_value = _response({"code": 0, "data": {"execute_id": "ex-1"}})
        self.session.get.side_effect = [
            _response({}, ok=False, status=502),
            _response({"code": 0, "data": {"status": "running"}}),
            _response({"code": 0, "data": {"status": "success", "outputs": {"planText": "Day 1"}}}),
        ]
        self.assertEqual(self.client.generate(REQUEST), "Day 1")
        self.assertEqual(self.sleeps, [1.0, 1.0, 1.0])
        self.assertEqual(self.session.get.call_args.kwargs["params"], {"execute_id": "ex-1"})

    def test_failed_execution_raises(self):
        self.session.post.return_value = _response({"code": 0, "data": {"execute_id": "ex-1"}})
        self.session.get.return_value = _response({"code": 0, "data": {"status": "failed"}})
        with self.assertRaises(PlanGenerationError):
            self.client.generate(REQUEST)

    def test_polling_gives_up(self):
        self.session.post.return_value = _response({"code": 0, "data": {"execute_id": "ex-1"}})
        self.session.get.return_value = _response({"code": 0, "data": {"status": "running"}})
        with self.assertRaises(PlanGenerationError) as ctx:
            self.client.generate(REQUEST)
        self.assertIn("timed out", str(ctx.exception))
        self.assertEqual(self.session.get.call_count, 3)

    def test_run_failure_raises(self):
        self.session.post.return_value = _response({"msg": "unauthorized"}, ok=False, status=401)
        with self.assertRaises(PlanGenerationError):
            self.client.generate(REQUEST)


class GeminiPlanGeneratorTests(unittest.TestCase):
    @patch("planner.gemini.genai.Client")
    def test_generate_sends_prompt(self, mock_client):
        mock_client.return_value.models.generate_content.return_value = MagicMock(text="Day 1: Xi'an")
        generator = GeminiPlanGenerator(api_key="key", model="gemini-test")
        self.assertEqual(generator.generate(REQUEST), "Day 1: Xi'an")
        kwargs = mock_client.return_value.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], "gemini-test")
        self.assertIn("Xi'an", kwargs["contents"])

    def test_missing_key_raises(self):
        with self.assertRaises(PlanGenerationError):
            GeminiPlanGenerator(api_key="").generate(REQUEST)


class PromptAndOfflineTests(unittest.TestCase):
    def test_prompt_mentions_trip(self):
        prompt = prompts.make_plan_prompt(REQUEST)
        self.assertIn("3-day trip from Beijing to Xi'an", prompt)
        self.assertIn("history, food", prompt)

    def test_offline_plan_has_one_line_per_day(self):
        text = OfflinePlanGenerator().generate(REQUEST)
        self.assertEqual(sum(1 for line in text.splitlines() if line.startswith("Day ")), 3)


if __name__ == "__main__":
    unittest.main()
