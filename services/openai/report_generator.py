"""Travel report helper using the OpenAI Responses API.

Given the selected agent's details and the conversation log, this module
asks the report model for a structured JSON travel report and turns it
into a `TravelReport`.
"""

import json
import logging
import time
from typing import Any, Dict, List

from openai import AsyncOpenAI

from models.travel_report import TravelReport
from services.openai.response_parser import extract_text, strip_code_fences
from services.openai.travel_prompts import REPORT_SYSTEM_PROMPT


class TravelReportGenerator:
    """Create a TravelReport from session details and the message log."""

    def __init__(self, client: AsyncOpenAI, *, model: str = "gpt-5-mini", timeout: float = 60.0) -> None:
        if client is None:
            raise ValueError("OpenAI AsyncOpenAI client is required.")
        self.client = client
        self.model = model
        self.timeout = timeout

    async def generate(self, session_detail: Dict[str, Any], messages: List[Any]) -> TravelReport:
        """Generate a report.

        Args:
            session_detail: Agent and session information shown to the model.
            messages: Conversation log the report summarises.

        Returns:
            The parsed TravelReport.

        Raises:
            ValueError: If the model output is not a JSON object.
        """
        start = time.time()
        user_input = (
            "AI Travel Agent Info:" + json.dumps(session_detail, default=str)
            + ", Conversation:" + json.dumps(messages, default=str)
        )

        try:
            response = await self.client.responses.create(
                model=self.model,
                input=[
                    {
                        "type": "message",
                        "role": "system",
                        "content": [{"type": "input_text", "text": REPORT_SYSTEM_PROMPT}],
                    },
                    {
                        "type": "message",
                        "role": "user",
                        "content": [{"type": "input_text", "text": user_input}],
                    },
                ],
                timeout=self.timeout,
            )
        except Exception as exc:
            logging.error(f"OpenAI Responses API error: {exc}")
            raise

        raw = extract_text(response)
        try:
            report = TravelReport.from_dict(json.loads(strip_code_fences(raw)))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Report model returned invalid JSON: {exc}") from exc

        logging.info(f"Travel report generation latency: {time.time() - start:.3f}s")
        return report
