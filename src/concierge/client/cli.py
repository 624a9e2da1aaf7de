"""CLI client for the Concierge API."""

from __future__ import annotations

import logging
from typing import (
    Any,
    Dict,
    Tuple,
    cast,
)

import httpx

from concierge.common import (
    AnsiColors,
    colored_print,
)
from concierge.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def call_api(
    endpoint: str, data: Dict[str, Any], base_url: str | None = None, max_retries: int = 5
) -> Dict[str, Any]:
    """Make a POST request to the API and return the response, retrying while it starts up."""
    api_url = f"{base_url or f'http://localhost:{settings.API_PORT}'}{endpoint}"

    for attempt in range(max_retries):
        try:
            with httpx.Client(timeout=60.0) as client:
                response = client.post(api_url, json=data)
                response.raise_for_status()
                return cast(Dict[str, Any], response.json())
        except httpx.ConnectError as e:
            if attempt < max_retries - 1:
                retry_delay = 0.5 * (2**attempt)  # exponential backoff: 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                import time  # pylint: disable=import-outside-toplevel

                time.sleep(retry_delay)
                continue
            logger.error("API connection error: %s", str(e))
            return {"reply": f"Error connecting to API: {str(e)}"}
        except httpx.HTTPStatusError as e:
            logger.error("API request error: %s", str(e))
            try:
                detail = e.response.json().get("detail", str(e))
            except ValueError:
                detail = str(e)
            return {"reply": f"API error: {detail}", "error": True}
        except httpx.HTTPError as e:
            logger.error("API request error: %s", str(e))
            return {"reply": f"Error connecting to API: {str(e)}", "error": True}

    return {"reply": f"Failed to connect to API after {max_retries} attempts", "error": True}


def run_cli(base_url: str | None = None) -> None:
    """Run the CLI client that communicates with the API."""
    session_response = call_api("/sessions", {}, base_url=base_url)
    session_id = session_response.get("session_id")

    if not session_id:
        colored_print("Failed to create a session", AnsiColors.RED)
        return

    colored_print("\nConcierge chat - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.GREEN)
    while True:
        colored_print("\nYou: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        response = call_api(
            "/agent", {"message": user_msg, "session_id": session_id}, base_url=base_url
        )

        for result in response.get("tool_results") or []:
            color = AnsiColors.RED if result.get("failed") else AnsiColors.GREEN
            colored_print(f"[{result.get('name')}] {result.get('content')}", color)

        color = AnsiColors.RED if response.get("error") else AnsiColors.YELLOW
        colored_print(response.get("reply", "No response from API"), color)
        if response.get("sources"):
            colored_print(f"relevantInfo: {response['sources']}", AnsiColors.BLUE)


if __name__ == "__main__":
    run_cli()
