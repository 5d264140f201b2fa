"""
Stage-boundary trace events and the sinks that receive them.

The scheduler emits one IN event when a stage starts and one OUT event when it
finishes (successfully or not). Sinks are write-only from the core's point of
view; nothing in the pipeline reads traces back.

Sinks:
  - MemoryTraceSink: keeps events per correlation id, with summary()
  - LoggingTraceSink: one log line per event
  - JsonFileTraceSink: one JSON-lines file per correlation id
  - MultiTraceSink: fans out to several sinks

Tracer wraps stage calls for one correlation id.
"""

import json
import logging
import secrets
import string
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def new_correlation_id() -> str:
    """gen_<epoch ms>_<9 random base36 chars>."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"gen_{int(time.time() * 1000)}_{suffix}"


class TracePhase(str, Enum):
    IN = "IN"
    OUT = "OUT"


@dataclass
class TraceEvent:
    correlation_id: str
    stage: str
    phase: TracePhase
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        event = asdict(self)
        event["phase"] = self.phase.value
        event["time"] = datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat()
        return event


@runtime_checkable
class TraceSink(Protocol):
    """Anything that accepts trace events. Must tolerate concurrent appends."""

    def emit(self, event: TraceEvent) -> None: ...


# =============================================================================
# SINKS
# =============================================================================


class MemoryTraceSink:
    """In-process sink, grouped by correlation id.

    Meant for tests and single runs. Only the most recent ``max_requests``
    correlation ids are kept; older ones are dropped as new ones arrive.
    Long-lived processes should call clear() or use JsonFileTraceSink.

    Usage:
        sink = MemoryTraceSink()
        orchestrator = PipelineOrchestrator(stages, trace_sink=sink)
        await orchestrator.submit("...")
        sink.summary(correlation_id)
        sink.clear(correlation_id)
    """

    def __init__(self, max_requests: int = 100):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.events: dict[str, list[TraceEvent]] = {}

    def emit(self, event: TraceEvent) -> None:
        if event.correlation_id not in self.events:
            while len(self.events) >= self.max_requests:
                del self.events[next(iter(self.events))]
            self.events[event.correlation_id] = []
        self.events[event.correlation_id].append(event)

    def clear(self, correlation_id: str | None = None) -> None:
        """Drop one request's events, or everything when no id is given."""
        if correlation_id is None:
            self.events.clear()
        else:
            self.events.pop(correlation_id, None)

    def events_for(self, correlation_id: str) -> list[TraceEvent]:
        return list(self.events.get(correlation_id, []))

    def summary(self, correlation_id: str) -> dict:
        """Stages seen, phase counts, per-stage duration (IN to OUT) and errors."""
        events = self.events.get(correlation_id, [])
        started: dict[str, float] = {}
        timings: dict[str, float] = {}
        phases = {TracePhase.IN.value: 0, TracePhase.OUT.value: 0}
        stages: list[str] = []
        errors: list[dict] = []

        for event in events:
            phases[event.phase.value] += 1
            if event.stage not in stages:
                stages.append(event.stage)
            if event.phase is TracePhase.IN:
                started[event.stage] = event.timestamp
            elif event.stage in started:
                elapsed = (event.timestamp - started.pop(event.stage)) * 1000
                timings[event.stage] = timings.get(event.stage, 0.0) + round(elapsed, 2)
            if event.data.get("error"):
                errors.append({"stage": event.stage, "error": event.data["error"]})

        return {
            "correlation_id": correlation_id,
            "stages": stages,
            "phases": phases,
            "timings_ms": timings,
            "errors": errors,
        }


class LoggingTraceSink:
    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def emit(self, event: TraceEvent) -> None:
        logger.log(
            self.level,
            f"[Trace] {event.correlation_id} {event.stage} {event.phase.value} "
            f"{json.dumps(event.data, default=str)}",
        )


class JsonFileTraceSink:
    """Appends each event as a JSON line to <directory>/<correlation_id>.jsonl."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, correlation_id: str) -> Path:
        return self.directory / f"{correlation_id}.jsonl"

    def emit(self, event: TraceEvent) -> None:
        path = self.path_for(event.correlation_id)
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(event.to_dict(), default=str) + "\n")
        except OSError as e:
            logger.warning(f"[Trace] Write failed for {path}: {e}")


class MultiTraceSink:
    """Fans one event out to several sinks; a failing sink does not stop the others."""

    def __init__(self, *sinks: TraceSink):
        self.sinks = list(sinks)

    def emit(self, event: TraceEvent) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception as e:
                logger.warning(f"[Trace] {type(sink).__name__} failed: {e}")


# =============================================================================
# PER-REQUEST TRACER
# =============================================================================


class Tracer:
    """Emits IN/OUT pairs around stage calls for one correlation id.

    Sink failures are logged and never reach the caller.
    """

    def __init__(self, correlation_id: str, sink: TraceSink | None = None):
        self.correlation_id = correlation_id
        self.sink = sink

    def emit(self, stage: str, phase: TracePhase, data: dict[str, Any] | None = None) -> None:
        if self.sink is None:
            return
        try:
            self.sink.emit(TraceEvent(
                correlation_id=self.correlation_id,
                stage=stage,
                phase=phase,
                data=data or {},
            ))
        except Exception as e:
            logger.warning(f"[Trace] Emit failed for {stage} {phase.value}: {e}")

    async def call(self, stage: str, fn: Callable[..., Awaitable[Any]], *args: Any) -> tuple[Any, float]:
        """Await fn(*args) between an IN and an OUT event. Returns (result, elapsed ms)."""
        self.emit(stage, TracePhase.IN)
        start = time.perf_counter()
        try:
            result = await fn(*args)
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            self.emit(stage, TracePhase.OUT, {
                "success": False,
                "error": f"{type(e).__name__}: {e}",
                "elapsed_ms": round(elapsed, 2),
            })
            raise
        elapsed = (time.perf_counter() - start) * 1000
        self.emit(stage, TracePhase.OUT, {
            "success": getattr(result, "success", True),
            "error": getattr(result, "error", None),
            "elapsed_ms": round(elapsed, 2),
        })
        return result, elapsed
