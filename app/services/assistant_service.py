from app.core.exceptions import RunCancelledError, UpstreamError
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
import asyncio
import logging
import time

logger = logging.getLogger(__name__)

PENDING_RUN_STATUSES = ("queued", "in_progress")


def _message_text(message) -> str:
    """Join the text blocks of a thread message."""
    return "\n".join(
        block.text.value for block in message.content if block.type == "text"
    )


class AssistantService:
    """Stateful conversations on OpenAI Assistants threads."""

    def __init__(
        self,
        client,
        assistant_id: Optional[str],
        poll_interval: float = 1.0,
        max_poll_interval: float = 8.0,
        run_timeout: float = 120.0
    ):
        self.client = client
        self.assistant_id = assistant_id
        self.poll_interval = poll_interval
        self.max_poll_interval = max_poll_interval
        self.run_timeout = run_timeout

    def _ensure_configured(self, need_assistant: bool = True):
        if self.client is None or (need_assistant and not self.assistant_id):
            logger.error("OpenAI API Key or Assistant ID not configured.")
            raise UpstreamError("OpenAI assistant is not configured")

    async def _cancel_run(self, thread_id: str, run_id: str):
        try:
            await self.client.beta.threads.runs.cancel(run_id, thread_id=thread_id)
        except Exception as e:
            logger.warning(f"Could not cancel run {run_id} on thread {thread_id}: {e}")

    async def _wait_for_run(
        self,
        thread_id: str,
        run,
        is_cancelled: Optional[Callable[[], Awaitable[bool]]] = None
    ):
        """
        Poll a run until it leaves the queued/in-progress states.

        The interval doubles after each check up to ``max_poll_interval``.
        Past ``run_timeout`` seconds, or once ``is_cancelled`` reports true,
        the run is cancelled on the provider side and an error is raised.
        """
        deadline = time.monotonic() + self.run_timeout
        interval = self.poll_interval

        while run.status in PENDING_RUN_STATUSES:
            if is_cancelled is not None and await is_cancelled():
                logger.info(f"Client went away, cancelling run {run.id}")
                await self._cancel_run(thread_id, run.id)
                raise RunCancelledError()

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.error(f"Run {run.id} still {run.status} after {self.run_timeout}s")
                await self._cancel_run(thread_id, run.id)
                raise UpstreamError("Assistant run timed out", status_code=504)

            await asyncio.sleep(min(interval, remaining))
            interval = min(interval * 2, self.max_poll_interval)
            try:
                run = await self.client.beta.threads.runs.retrieve(run.id, thread_id=thread_id)
            except Exception as e:
                logger.error(f"Error polling run {run.id} on thread {thread_id}: {e}")
                raise UpstreamError("Failed to interact with OpenAI Assistant")

        return run

    async def interact(
        self,
        user_input: str,
        thread_id: Optional[str] = None,
        is_cancelled: Optional[Callable[[], Awaitable[bool]]] = None
    ) -> Dict[str, Any]:
        """
        Send a user message and return the assistant's replies.

        Creates a thread when none is given. Returns the thread id and the
        assistant-authored messages oldest-first.
        """
        self._ensure_configured()

        try:
            if not thread_id:
                thread = await self.client.beta.threads.create()
                thread_id = thread.id
                logger.info(f"Created assistant thread {thread_id}")

            await self.client.beta.threads.messages.create(
                thread_id,
                role="user",
                content=user_input,
            )
            run = await self.client.beta.threads.runs.create(
                thread_id=thread_id,
                assistant_id=self.assistant_id,
            )
        except Exception as e:
            logger.error(f"Error interacting with OpenAI Assistant: {e}")
            raise UpstreamError("Failed to interact with OpenAI Assistant")

        run = await self._wait_for_run(thread_id, run, is_cancelled)

        if run.status != "completed":
            last_error = getattr(run, "last_error", None)
            logger.error(f"OpenAI run failed with status: {run.status}, last error: {last_error}")
            message = last_error.message if last_error and last_error.message else f"Assistant run {run.status}"
            raise UpstreamError(message)

        try:
            page = await self.client.beta.threads.messages.list(thread_id)
        except Exception as e:
            logger.error(f"Error fetching assistant messages for thread {thread_id}: {e}")
            raise UpstreamError("Failed to interact with OpenAI Assistant")

        # The default listing is newest first.
        messages = [
            _message_text(message) for message in page.data if message.role == "assistant"
        ]
        messages.reverse()

        return {"threadId": thread_id, "messages": messages}

    async def list_thread_messages(
        self,
        thread_id: str,
        limit: int = 20,
        order: str = "desc",
        after: Optional[str] = None,
        before: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Fetch one page of thread messages with the provider's cursors.

        The page is returned in chronological order whatever ``order`` was
        used to fetch it. ``firstIdInBatch``/``lastIdInBatch`` describe the
        fetched page, not the whole thread.
        """
        self._ensure_configured(need_assistant=False)

        params = {"limit": limit, "order": order}
        if after:
            params["after"] = after
        if before:
            params["before"] = before

        try:
            page = await self.client.beta.threads.messages.list(thread_id, **params)
        except Exception as e:
            logger.error(f"Error listing thread messages from OpenAI (thread ID: {thread_id}): {e}")
            raise UpstreamError(f"Failed to retrieve messages from OpenAI: {e}")

        messages: List[Dict[str, Any]] = [
            {
                "id": message.id,
                "role": message.role,
                "content": _message_text(message),
                "createdAt": datetime.fromtimestamp(message.created_at, tz=timezone.utc).isoformat(),
            }
            for message in page.data
        ]

        first_id = getattr(page, "first_id", None) or (page.data[0].id if page.data else None)
        last_id = getattr(page, "last_id", None) or (page.data[-1].id if page.data else None)

        if order == "desc":
            messages.reverse()

        return {
            "messages": messages,
            "hasMore": bool(getattr(page, "has_more", False)),
            "firstIdInBatch": first_id,
            "lastIdInBatch": last_id,
        }
