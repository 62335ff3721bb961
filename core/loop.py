"""Streaming step loop.

One AgentLoop drives one run of one thread:

    idle -> running -> completed | aborted | suspended | failed

Each step invokes the model once, streams its output as events, dispatches
the requested tool calls (through the approval gate when configured), saves
a checkpoint and decides whether to continue. The loop never raises for
model, tool or checkpoint errors: it ends with exactly one `error` event
(failed) or one `done` event (every other outcome).

Cancellation is cooperative: the abort signal is checked at the start of
every step and before every tool dispatch, never inside a model chunk read
or a running tool.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, SystemMessage, ToolMessage
from langchain_core.tools import BaseTool, ToolException
from pydantic import BaseModel

from core.approval import ApprovalGate, ApprovalRequest, new_approval_id, rejected_text
from core.checkpoint.types import BaseCheckpointSaver, Checkpoint, InterruptData, ResumeDecision, ResumeOptions
from core.context import InputSource, build_turn_input
from core.errors import CheckpointError, NoValidInputError, OutputValidationError
from core.eviction import DEFAULT_EVICTION_TOKEN_LIMIT, evict_if_needed
from core.events import (
    ApprovalRequestedEvent,
    ApprovalResponseEvent,
    CheckpointLoadedEvent,
    CheckpointSavedEvent,
    ContextSummarizedEvent,
    DoneEvent,
    ErrorEvent,
    RunStatus,
    StepFinishEvent,
    StepStartEvent,
    TextEvent,
    TextSegmentEvent,
    ToolCallEvent,
    ToolResultEvent,
    ToolResultEvictedEvent,
    UserMessageEvent,
)
from core.filesystem.backend import FileSystemBackend
from core.memory.summarizer import DEFAULT_KEEP_MESSAGES, DEFAULT_SUMMARIZATION_THRESHOLD, summarize_if_needed
from core.output import output_instructions, parse_output
from core.messages import (
    cancelled_tool_message,
    is_pending_approval,
    message_text,
    patch_tool_calls,
    pending_approval_message,
)
from core.model import ModelInvoker, StepFinish, TextDelta, ToolCallRequest, Usage
from core.state import AgentState, utc_now
from core.tools.base import EventSink, _discard

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 100


@dataclass
class SummarizationSettings:
    enabled: bool = False
    token_threshold: int = DEFAULT_SUMMARIZATION_THRESHOLD
    keep_messages: int = DEFAULT_KEEP_MESSAGES


@dataclass
class StepResult:
    """Passed to on_step_finish after every completed step."""

    step_number: int
    text: str
    tool_calls: list[ToolCallRequest]
    tool_results: list[ToolMessage]
    finish_reason: str | None = None
    usage: Usage | None = None


@dataclass
class RunResult:
    status: RunStatus
    text: str
    messages: list[BaseMessage]
    state: AgentState
    steps: int = 0
    interrupt: InterruptData | None = None
    error: BaseException | None = None
    usage: Usage = field(default_factory=Usage)
    output: BaseModel | None = None


StepCallback = Callable[[StepResult], Any]


async def _call_maybe_async(fn: Callable[..., Any], *args: Any) -> Any:
    result = fn(*args)
    if inspect.isawaitable(result):
        return await result
    return result


def _tool_output_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    if isinstance(output, BaseMessage):
        return message_text(output)
    return json.dumps(output, default=str, ensure_ascii=False)


class AgentLoop:
    def __init__(
        self,
        invoker: ModelInvoker,
        tools: Sequence[BaseTool],
        state: AgentState,
        backend: FileSystemBackend,
        emit: EventSink = _discard,
        *,
        thread_id: str | None = None,
        checkpointer: BaseCheckpointSaver | None = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        system_prompt: str | None = None,
        approval_gate: ApprovalGate | None = None,
        eviction_token_limit: int | None = DEFAULT_EVICTION_TOKEN_LIMIT,
        summarization: SummarizationSettings | None = None,
        summarization_model: Any = None,
        abort_signal: asyncio.Event | None = None,
        on_step_finish: StepCallback | None = None,
        output_schema: type[BaseModel] | None = None,
    ):
        self.invoker = invoker
        self.tools = list(tools)
        self.tools_by_name = {t.name: t for t in self.tools}
        self.state = state
        self.backend = backend
        self.emit = emit
        self.thread_id = thread_id
        self.checkpointer = checkpointer
        self.max_steps = max_steps
        self.system_prompt = system_prompt
        self.gate = approval_gate or ApprovalGate()
        self.eviction_token_limit = eviction_token_limit
        self.summarization = summarization or SummarizationSettings()
        self.summarization_model = summarization_model if summarization_model is not None else invoker.chat_model
        self.abort_signal = abort_signal
        self.on_step_finish = on_step_finish
        self.output_schema = output_schema
        if output_schema is not None:
            self.system_prompt = "\n\n".join(p for p in (system_prompt, output_instructions(output_schema)) if p)

        self.status = RunStatus.IDLE
        self.usage = Usage()
        self._created_at = utc_now()

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    async def run(
        self,
        prompt: str | None = None,
        messages: list[BaseMessage] | None = None,
        resume: ResumeOptions | None = None,
    ) -> RunResult:
        if self.status is not RunStatus.IDLE:
            raise RuntimeError(f"AgentLoop already used (status={self.status.value})")
        self.status = RunStatus.RUNNING
        try:
            return await self._run(prompt, messages, resume)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if isinstance(e, NoValidInputError):
                logger.warning("Agent run rejected (thread=%s): %s", self.thread_id, e)
            else:
                logger.exception("Agent run failed (thread=%s)", self.thread_id)
            self.status = RunStatus.FAILED
            await self.emit(ErrorEvent(error=e))
            return RunResult(status=RunStatus.FAILED, text="", messages=[], state=self.state, error=e, usage=self.usage)

    def _aborted(self) -> bool:
        return self.abort_signal is not None and self.abort_signal.is_set()

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    async def _load_checkpoint(self) -> Checkpoint | None:
        if self.checkpointer is None or not self.thread_id:
            return None
        try:
            checkpoint = await self.checkpointer.load(self.thread_id)
        except Exception as e:
            logger.warning("Checkpoint load failed for thread %s, starting fresh: %s", self.thread_id, e)
            return None
        if checkpoint is not None:
            logger.info("Loaded checkpoint for thread %s at step %d", self.thread_id, checkpoint.step)
        return checkpoint

    async def _save_checkpoint(self, messages: list[BaseMessage], step: int, interrupt: InterruptData | None = None) -> None:
        if self.checkpointer is None or not self.thread_id:
            return
        checkpoint = Checkpoint(
            thread_id=self.thread_id,
            step=step,
            messages=list(messages),
            state=self.state,
            interrupt=interrupt,
            created_at=self._created_at,
        )
        try:
            await self.checkpointer.save(checkpoint)
        except Exception as e:
            raise CheckpointError(f"Failed to save checkpoint for thread '{self.thread_id}' at step {step}: {e}") from e
        logger.debug("Saved checkpoint for thread %s at step %d", self.thread_id, step)
        await self.emit(CheckpointSavedEvent(thread_id=self.thread_id, step=step))

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def _run(
        self,
        prompt: str | None,
        explicit_messages: list[BaseMessage] | None,
        resume: ResumeOptions | None,
    ) -> RunResult:
        checkpoint = await self._load_checkpoint()
        reset = explicit_messages is not None and not explicit_messages
        resuming = checkpoint is not None and checkpoint.interrupt is not None
        start_step = 0
        history: list[BaseMessage] = []
        if checkpoint is not None:
            start_step = checkpoint.step
            history = list(checkpoint.messages)
            self._created_at = checkpoint.created_at
            self.state.load_from(checkpoint.state)
            await self.emit(
                CheckpointLoadedEvent(thread_id=checkpoint.thread_id, step=checkpoint.step, message_count=len(history))
            )
            if checkpoint.interrupt is not None and not reset:
                decision = resume.decisions[0] if resume and resume.decisions else None
                history = await self._resolve_interrupt(history, checkpoint.interrupt, decision)
                # The resolved call is persisted before the next model call or abort check.
                await self._save_checkpoint(history, start_step)
        elif resume is not None:
            logger.warning("Resume requested for thread %s but no checkpoint exists", self.thread_id)

        turn = build_turn_input(
            messages=explicit_messages,
            prompt=prompt,
            checkpoint_messages=history,
            resume_in_progress=resuming,
            thread_id=self.thread_id,
        )
        if turn.is_reset and self.checkpointer is not None and self.thread_id:
            await self.checkpointer.delete(self.thread_id)
            logger.info("Reset thread %s", self.thread_id)
        if turn.is_noop:
            self.status = RunStatus.COMPLETED
            await self.emit(DoneEvent(state=self.state, text="", messages=[], status=RunStatus.COMPLETED))
            return RunResult(status=RunStatus.COMPLETED, text="", messages=[], state=self.state, usage=self.usage)
        if turn.source is InputSource.PROMPT and prompt:
            await self.emit(UserMessageEvent(content=prompt))

        messages = patch_tool_calls(turn.messages)
        if self.summarization.enabled:
            summary = await summarize_if_needed(
                messages,
                self.summarization_model,
                token_threshold=self.summarization.token_threshold,
                keep_messages=self.summarization.keep_messages,
            )
            if summary.summarized:
                messages = summary.messages
                await self.emit(
                    ContextSummarizedEvent(tokens_before=summary.tokens_before, tokens_after=summary.tokens_after)
                )

        step = start_step
        steps_run = 0
        final_text = ""
        while True:
            if self._aborted():
                return await self._finish(RunStatus.ABORTED, messages, final_text, steps_run)
            if steps_run >= self.max_steps:
                logger.info("Thread %s reached max_steps=%d", self.thread_id, self.max_steps)
                break
            step += 1
            steps_run += 1
            await self.emit(StepStartEvent(step_number=step))

            text, calls, finish = await self._invoke_model(messages)
            if text:
                final_text = text
            messages.append(
                AIMessage(
                    content=text,
                    tool_calls=[
                        {"id": c.tool_call_id, "name": c.tool_name, "args": c.args, "type": "tool_call"} for c in calls
                    ],
                )
            )

            results, interrupt, aborted = await self._dispatch_all(calls, step)
            messages.extend(results)

            await self.emit(
                StepFinishEvent(
                    step_number=step,
                    tool_calls=[{"tool_call_id": c.tool_call_id, "tool_name": c.tool_name, "args": c.args} for c in calls],
                    finish_reason=finish.finish_reason,
                )
            )
            await self._notify_step_finish(StepResult(step, text, calls, results, finish.finish_reason, finish.usage))
            await self._save_checkpoint(messages, step, interrupt)

            if interrupt is not None:
                logger.info("Thread %s suspended on approval for %s", self.thread_id, interrupt.tool_name)
                return await self._finish(RunStatus.SUSPENDED, messages, final_text, steps_run, interrupt)
            if aborted:
                return await self._finish(RunStatus.ABORTED, messages, final_text, steps_run)
            if not calls:
                break

        return await self._finish(RunStatus.COMPLETED, messages, final_text, steps_run)

    async def _finish(
        self,
        status: RunStatus,
        messages: list[BaseMessage],
        text: str,
        steps: int,
        interrupt: InterruptData | None = None,
    ) -> RunResult:
        output = None
        if status is RunStatus.COMPLETED and self.output_schema is not None:
            try:
                output = parse_output(text, self.output_schema)
            except OutputValidationError as e:
                logger.warning("Thread %s: %s", self.thread_id, e)
                self.status = RunStatus.FAILED
                await self.emit(ErrorEvent(error=e))
                return RunResult(
                    status=RunStatus.FAILED,
                    text=text,
                    messages=list(messages),
                    state=self.state,
                    steps=steps,
                    error=e,
                    usage=self.usage,
                )
        self.status = status
        await self.emit(DoneEvent(state=self.state, text=text, messages=list(messages), status=status, interrupt=interrupt))
        return RunResult(
            status=status,
            text=text,
            messages=list(messages),
            state=self.state,
            steps=steps,
            interrupt=interrupt,
            usage=self.usage,
            output=output,
        )

    async def _notify_step_finish(self, result: StepResult) -> None:
        if self.on_step_finish is None:
            return
        try:
            await _call_maybe_async(self.on_step_finish, result)
        except Exception:
            logger.exception("on_step_finish callback failed at step %d", result.step_number)

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    def _model_messages(self, messages: list[BaseMessage]) -> list[BaseMessage]:
        if self.system_prompt and not (messages and isinstance(messages[0], SystemMessage)):
            return [SystemMessage(content=self.system_prompt), *messages]
        return messages

    async def _invoke_model(self, messages: list[BaseMessage]) -> tuple[str, list[ToolCallRequest], StepFinish]:
        full_text: list[str] = []
        segment: list[str] = []
        calls: list[ToolCallRequest] = []
        finish = StepFinish()

        async def flush_segment() -> None:
            if segment:
                await self.emit(TextSegmentEvent(text="".join(segment)))
                segment.clear()

        async for chunk in self.invoker.stream(self._model_messages(messages), self.tools, self.abort_signal):
            match chunk:
                case TextDelta(text=text):
                    full_text.append(text)
                    segment.append(text)
                    await self.emit(TextEvent(text=text))
                case ToolCallRequest():
                    await flush_segment()
                    calls.append(chunk)
                    await self.emit(ToolCallEvent(tool_call_id=chunk.tool_call_id, tool_name=chunk.tool_name, args=chunk.args))
                case StepFinish():
                    finish = chunk
                    if chunk.usage is not None:
                        self.usage = self.usage + chunk.usage
        await flush_segment()
        return "".join(full_text), calls, finish

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def _cancel_calls(self, calls: Sequence[ToolCallRequest]) -> list[ToolMessage]:
        results = []
        for call in calls:
            message = cancelled_tool_message(call.tool_name, call.tool_call_id)
            await self.emit(
                ToolResultEvent(tool_call_id=call.tool_call_id, tool_name=call.tool_name, result=message.content, is_error=True)
            )
            results.append(message)
        return results

    async def _dispatch_all(
        self, calls: list[ToolCallRequest], step: int
    ) -> tuple[list[ToolMessage], InterruptData | None, bool]:
        """Run the step's tool calls in order. Returns (results, interrupt, aborted)."""
        results: list[ToolMessage] = []
        for i, call in enumerate(calls):
            if self._aborted():
                results.extend(await self._cancel_calls(calls[i:]))
                return results, None, True

            if await self.gate.needs_approval(call.tool_name, call.args):
                request = ApprovalRequest(new_approval_id(), call.tool_call_id, call.tool_name, call.args)
                await self.emit(
                    ApprovalRequestedEvent(
                        approval_id=request.approval_id,
                        tool_call_id=call.tool_call_id,
                        tool_name=call.tool_name,
                        args=call.args,
                    )
                )
                if not self.gate.can_decide:
                    placeholder = pending_approval_message(call.tool_name, call.tool_call_id, request.approval_id)
                    await self.emit(
                        ToolResultEvent(tool_call_id=call.tool_call_id, tool_name=call.tool_name, result=placeholder.content)
                    )
                    results.append(placeholder)
                    results.extend(await self._cancel_calls(calls[i + 1 :]))
                    interrupt = InterruptData(
                        tool_call_id=call.tool_call_id,
                        tool_name=call.tool_name,
                        args=call.args,
                        step=step,
                        approval_id=request.approval_id,
                    )
                    return results, interrupt, False

                approved = await self._await_decision(request)
                if approved is None:
                    results.extend(await self._cancel_calls(calls[i:]))
                    return results, None, True
                await self.emit(ApprovalResponseEvent(approval_id=request.approval_id, approved=approved))
                if not approved:
                    results.append(await self._rejected(call))
                    continue

            results.append(await self._dispatch(call))
        return results, None, False

    async def _await_decision(self, request: ApprovalRequest) -> bool | None:
        """The caller's decision, or None if the run is aborted while waiting."""
        decision = asyncio.ensure_future(self.gate.decide(request))
        if self.abort_signal is None:
            return await decision
        aborted = asyncio.ensure_future(self.abort_signal.wait())
        try:
            done, _ = await asyncio.wait({decision, aborted}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for fut in (decision, aborted):
                if not fut.done():
                    fut.cancel()
        if decision in done:
            return decision.result()
        return None

    async def _rejected(self, call: ToolCallRequest) -> ToolMessage:
        text = rejected_text(call.tool_name)
        await self.emit(ToolResultEvent(tool_call_id=call.tool_call_id, tool_name=call.tool_name, result=text, is_error=True))
        return ToolMessage(content=text, tool_call_id=call.tool_call_id, name=call.tool_name, status="error")

    async def _dispatch(self, call: ToolCallRequest) -> ToolMessage:
        tool = self.tools_by_name.get(call.tool_name)
        is_error = False
        if tool is None:
            content = f"Error: Tool '{call.tool_name}' not found. Available tools: {', '.join(self.tools_by_name)}"
            is_error = True
        else:
            try:
                content = _tool_output_text(await tool.ainvoke(call.args))
            except ToolException as e:
                content = str(e)
                is_error = True
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Tool %s raised: %s", call.tool_name, e)
                content = f"Error executing {call.tool_name}: {e}"
                is_error = True

        if not is_error and self.eviction_token_limit is not None:
            evicted = await evict_if_needed(
                content, call.tool_call_id, call.tool_name, self.backend, self.eviction_token_limit
            )
            if evicted.evicted and evicted.path:
                content = evicted.content
                await self.emit(
                    ToolResultEvictedEvent(
                        tool_call_id=call.tool_call_id, tool_name=call.tool_name, path=evicted.path, tokens=evicted.tokens
                    )
                )

        await self.emit(
            ToolResultEvent(tool_call_id=call.tool_call_id, tool_name=call.tool_name, result=content, is_error=is_error)
        )
        return ToolMessage(
            content=content,
            tool_call_id=call.tool_call_id,
            name=call.tool_name,
            status="error" if is_error else "success",
        )

    async def _resolve_interrupt(
        self,
        history: list[BaseMessage],
        interrupt: InterruptData,
        decision: ResumeDecision | None,
    ) -> list[BaseMessage]:
        """Replace the pending-approval placeholder with the decided outcome."""
        call = ToolCallRequest(interrupt.tool_call_id, interrupt.tool_name, dict(interrupt.args))
        if decision is None:
            logger.warning(
                "Thread %s has a pending approval for %s but no decision was supplied; cancelling it",
                self.thread_id,
                interrupt.tool_name,
            )
            result = cancelled_tool_message(call.tool_name, call.tool_call_id)
        else:
            approved = decision.type == "approve"
            await self.emit(ApprovalResponseEvent(approval_id=interrupt.approval_id, approved=approved))
            if approved:
                if decision.modified_args is not None:
                    call.args = dict(decision.modified_args)
                result = await self._dispatch(call)
            else:
                result = await self._rejected(call)

        resolved = list(history)
        for idx, message in enumerate(resolved):
            if is_pending_approval(message) and message.tool_call_id == interrupt.tool_call_id:
                resolved[idx] = result
                break
        else:
            resolved.append(result)
        return resolved
