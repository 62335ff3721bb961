"""DeepAgent: the public entry point.

    agent = DeepAgent(ChatModelInvoker.from_model_name("anthropic:claude-sonnet-4-5"), checkpointer=MemorySaver())

    async for event in agent.stream_with_events("Summarize /notes.md", thread_id="t1"):
        match event:
            case TextEvent(text=text):
                print(text, end="")
            case DoneEvent(status=status):
                print(f"\n[{status.value}]")

Each run gets its own AgentLoop, event channel and tool instances; the agent
object itself holds only configuration and can serve many threads.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.tools import BaseTool, ToolException, tool
from pydantic import BaseModel

from config.schema import AgentSettings
from config.types import SkillMetadata, SubAgentConfig
from core.approval import ApprovalCallback, ApprovalGate, InterruptOn
from core.channel import DEFAULT_QUEUE_SIZE, EventChannel
from core.checkpoint.types import BaseCheckpointSaver, ResumeOptions
from core.eviction import DEFAULT_EVICTION_TOKEN_LIMIT
from core.events import AgentEvent, ErrorEvent, RunStatus, SubagentStepEvent
from core.factory import create_backend, create_checkpointer
from core.filesystem.backend import BackendSource, FileSystemBackend, as_backend_source, resolve_backend
from core.loop import DEFAULT_MAX_STEPS, AgentLoop, RunResult, StepCallback, StepResult, SummarizationSettings
from core.model import ChatModelInvoker, ModelInvoker
from core.state import AgentState
from core.tools import (
    ToolContext,
    create_execute_tool,
    create_filesystem_tools,
    create_skill_tool,
    create_task_tool,
    create_todo_tool,
    format_skills_section,
)
from core.tools.base import EventSink

logger = logging.getLogger(__name__)

EventCallback = Callable[[AgentEvent], Any]


def _as_tool(obj: BaseTool | Callable[..., Any]) -> BaseTool:
    if isinstance(obj, BaseTool):
        return obj
    return tool(obj)


class DeepAgent:
    def __init__(
        self,
        model: ModelInvoker | BaseChatModel | str,
        *,
        tools: Sequence[BaseTool | Callable[..., Any]] | None = None,
        system_prompt: str | None = None,
        backend: Any = None,
        checkpointer: BaseCheckpointSaver | None = None,
        interrupt_on: InterruptOn | None = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        summarization: SummarizationSettings | None = None,
        summarization_model: Any = None,
        eviction_token_limit: int | None = DEFAULT_EVICTION_TOKEN_LIMIT,
        subagents: Sequence[SubAgentConfig] | None = None,
        agent_memory: str | None = None,
        skills: Sequence[SkillMetadata] | None = None,
        output_schema: type[BaseModel] | None = None,
        event_queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        if isinstance(model, ModelInvoker):
            self.invoker = model
        elif isinstance(model, str):
            self.invoker = ChatModelInvoker.from_model_name(model)
        else:
            self.invoker = ChatModelInvoker(model)
        self.user_tools = [_as_tool(t) for t in tools or []]
        self.system_prompt = system_prompt
        self.backend_source: BackendSource = as_backend_source(backend)
        self.checkpointer = checkpointer
        self.interrupt_on = dict(interrupt_on or {})
        self.max_steps = max_steps
        self.summarization = summarization or SummarizationSettings()
        self.summarization_model = summarization_model
        self.eviction_token_limit = eviction_token_limit
        self.subagents = list(subagents or [])
        self.event_queue_size = event_queue_size
        self.agent_memory = agent_memory
        self.skills = list(skills or [])
        self.output_schema = output_schema

    @property
    def main_system_prompt(self) -> str | None:
        """System prompt of the top-level agent: base prompt, agent memory, then the skills list."""
        parts = [self.system_prompt, self.agent_memory]
        if self.skills:
            parts.append(format_skills_section(self.skills))
        return "\n\n".join(p for p in parts if p) or None

    @classmethod
    def from_settings(
        cls,
        settings: AgentSettings,
        model: ModelInvoker | BaseChatModel | None = None,
        **kwargs: Any,
    ) -> DeepAgent:
        """Build an agent from loaded settings. Keyword arguments override settings."""
        if model is None:
            model = ChatModelInvoker.from_model_name(settings.runtime.model, **settings.runtime.model_init_kwargs())
        summary = settings.memory.summarization
        options: dict[str, Any] = {
            "system_prompt": settings.runtime.system_prompt,
            "backend": create_backend(settings.backend),
            "checkpointer": create_checkpointer(settings.checkpoint),
            "interrupt_on": dict(settings.approval.interrupt_on),
            "max_steps": settings.runtime.max_steps,
            "summarization": SummarizationSettings(
                enabled=summary.enabled,
                token_threshold=summary.token_threshold,
                keep_messages=summary.keep_messages,
            ),
            "eviction_token_limit": settings.eviction.token_limit if settings.eviction.enabled else None,
            "subagents": list(settings.subagents),
            "event_queue_size": settings.runtime.event_queue_size,
            "agent_memory": settings.loaded_memory,
            "skills": list(settings.loaded_skills),
        }
        options.update(kwargs)
        return cls(model, **options)

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def _build_tools(
        self,
        ctx: ToolContext,
        *,
        abort_signal: asyncio.Event | None,
        on_approval_request: ApprovalCallback | None,
        include_task: bool = True,
    ) -> list[BaseTool]:
        built: list[BaseTool] = [create_todo_tool(ctx), *create_filesystem_tools(ctx)]
        execute = create_execute_tool(ctx)
        if execute is not None:
            built.append(execute)
        skill_tool = create_skill_tool(self.skills)
        if skill_tool is not None:
            built.append(skill_tool)
        if include_task:

            async def run_subagent(config: SubAgentConfig, description: str, parent: ToolContext) -> str:
                return await self._run_subagent(config, description, parent, abort_signal, on_approval_request)

            built.append(create_task_tool(ctx, self.subagents, run_subagent))
        by_name = {t.name: t for t in built}
        for user_tool in self.user_tools:
            by_name[user_tool.name] = user_tool
        return list(by_name.values())

    async def _run_subagent(
        self,
        config: SubAgentConfig,
        description: str,
        parent: ToolContext,
        abort_signal: asyncio.Event | None,
        on_approval_request: ApprovalCallback | None,
    ) -> str:
        child_state = AgentState(todos=[], files=parent.state.files)
        backend = resolve_backend(self.backend_source, child_state)
        child_ctx = ToolContext(backend=backend, state=child_state)
        tools = [
            t
            for t in self._build_tools(
                child_ctx, abort_signal=abort_signal, on_approval_request=on_approval_request, include_task=False
            )
            if config.allows(t.name)
        ]

        async def forward_step(result: StepResult) -> None:
            await parent.emit(
                SubagentStepEvent(
                    name=config.name,
                    step_number=result.step_number,
                    tool_calls=[{"tool_name": c.tool_name, "args": c.args} for c in result.tool_calls],
                )
            )

        loop = AgentLoop(
            self.invoker,
            tools,
            child_state,
            backend,
            max_steps=config.max_steps or self.max_steps,
            system_prompt=config.system_prompt or self.system_prompt,
            approval_gate=ApprovalGate(self.interrupt_on, on_approval_request),
            eviction_token_limit=self.eviction_token_limit,
            abort_signal=abort_signal,
            on_step_finish=forward_step,
        )
        result = await loop.run(prompt=description)
        match result.status:
            case RunStatus.COMPLETED:
                return result.text or f"Subagent {config.name} finished without a final response."
            case RunStatus.SUSPENDED:
                tool_name = result.interrupt.tool_name if result.interrupt else "a tool"
                raise ToolException(f"Error: subagent {config.name} stopped: {tool_name} requires approval")
            case RunStatus.ABORTED:
                raise ToolException(f"Error: subagent {config.name} was cancelled")
        raise ToolException(f"Error: subagent {config.name} failed: {result.error}")

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def _create_loop(
        self,
        emit: EventSink,
        *,
        thread_id: str | None,
        state: AgentState | None,
        max_steps: int | None,
        abort_signal: asyncio.Event | None,
        on_approval_request: ApprovalCallback | None,
        on_step_finish: StepCallback | None,
    ) -> AgentLoop:
        run_state = state if state is not None else AgentState()
        backend: FileSystemBackend = resolve_backend(self.backend_source, run_state)
        ctx = ToolContext(backend=backend, state=run_state, emit=emit)
        tools = self._build_tools(ctx, abort_signal=abort_signal, on_approval_request=on_approval_request)
        return AgentLoop(
            self.invoker,
            tools,
            run_state,
            backend,
            emit,
            thread_id=thread_id,
            checkpointer=self.checkpointer,
            max_steps=max_steps or self.max_steps,
            system_prompt=self.main_system_prompt,
            approval_gate=ApprovalGate(self.interrupt_on, on_approval_request),
            eviction_token_limit=self.eviction_token_limit,
            summarization=self.summarization,
            summarization_model=self.summarization_model,
            abort_signal=abort_signal,
            on_step_finish=on_step_finish,
            output_schema=self.output_schema,
        )

    def _start(
        self,
        prompt: str | None,
        messages: list[BaseMessage] | None,
        resume: ResumeOptions | None,
        **loop_options: Any,
    ) -> tuple[EventChannel, asyncio.Task[RunResult]]:
        channel = EventChannel(self.event_queue_size)
        loop = self._create_loop(channel.put, **loop_options)

        async def produce() -> RunResult:
            try:
                result = await loop.run(prompt=prompt, messages=messages, resume=resume)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Agent run crashed")
                await channel.put(ErrorEvent(error=e))
                result = RunResult(status=RunStatus.FAILED, text="", messages=[], state=loop.state, error=e)
            await channel.close()
            return result

        return channel, asyncio.create_task(produce())

    async def _drain(
        self,
        channel: EventChannel,
        task: asyncio.Task[RunResult],
        on_event: EventCallback | None = None,
    ) -> RunResult:
        try:
            async for event in channel:
                if on_event is not None:
                    value = on_event(event)
                    if inspect.isawaitable(value):
                        await value
            return await task
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def stream_with_events(
        self,
        prompt: str | None = None,
        *,
        messages: list[BaseMessage] | None = None,
        thread_id: str | None = None,
        state: AgentState | None = None,
        max_steps: int | None = None,
        abort_signal: asyncio.Event | None = None,
        resume: ResumeOptions | None = None,
        on_approval_request: ApprovalCallback | None = None,
        on_step_finish: StepCallback | None = None,
    ) -> AsyncIterator[AgentEvent]:
        """Run the agent and yield its events. The last event is `done` or `error`.

        Closing the generator early cancels the run.
        """
        channel, task = self._start(
            prompt,
            messages,
            resume,
            thread_id=thread_id,
            state=state,
            max_steps=max_steps,
            abort_signal=abort_signal,
            on_approval_request=on_approval_request,
            on_step_finish=on_step_finish,
        )
        try:
            async for event in channel:
                yield event
            await task
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def stream_with_callback(
        self,
        prompt: str | None = None,
        *,
        on_event: EventCallback,
        messages: list[BaseMessage] | None = None,
        thread_id: str | None = None,
        state: AgentState | None = None,
        max_steps: int | None = None,
        abort_signal: asyncio.Event | None = None,
        resume: ResumeOptions | None = None,
        on_approval_request: ApprovalCallback | None = None,
        on_step_finish: StepCallback | None = None,
    ) -> RunResult:
        """Forward every event to on_event (sync or async) and return the run result."""
        channel, task = self._start(
            prompt,
            messages,
            resume,
            thread_id=thread_id,
            state=state,
            max_steps=max_steps,
            abort_signal=abort_signal,
            on_approval_request=on_approval_request,
            on_step_finish=on_step_finish,
        )
        return await self._drain(channel, task, on_event)

    async def generate(
        self,
        prompt: str | None = None,
        *,
        messages: list[BaseMessage] | None = None,
        thread_id: str | None = None,
        state: AgentState | None = None,
        max_steps: int | None = None,
        abort_signal: asyncio.Event | None = None,
        resume: ResumeOptions | None = None,
        on_approval_request: ApprovalCallback | None = None,
        on_step_finish: StepCallback | None = None,
    ) -> RunResult:
        """Run to completion, discarding intermediate events."""
        channel, task = self._start(
            prompt,
            messages,
            resume,
            thread_id=thread_id,
            state=state,
            max_steps=max_steps,
            abort_signal=abort_signal,
            on_approval_request=on_approval_request,
            on_step_finish=on_step_finish,
        )
        return await self._drain(channel, task)
