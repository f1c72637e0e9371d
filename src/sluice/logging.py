"""Logging for sluice.

Every record can carry up to three pieces of context:

- pipeline: the Pipeline the record came from
- stage: the stage inside it, for records logged by its runner
- process: the asyncio task the record was logged from

Stage functions log through plain module loggers, so for them the process
(task) name is the only context there is. Records from get_logger() have
pipeline and stage names baked in.

configure_logging() installs one handler on the "sluice" logger, printing
either readable lines or JSON lines.
"""

import json
import logging
import sys
from collections.abc import MutableMapping
from typing import Any

ROOT_LOGGER = "sluice"

_CONTEXT_KEYS = (("pipeline", "pipeline"), ("stage", "stage"), ("taskName", "process"))


def _context(record: logging.LogRecord) -> dict[str, str]:
    """The pipeline, stage and process names set on a record."""
    context = {}
    for attr, key in _CONTEXT_KEYS:
        value = getattr(record, attr, None)
        if value is not None:
            context[key] = value
    return context


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            **_context(record),
        }
        if record.exc_info and record.exc_info[1]:
            error = record.exc_info[1]
            entry["error"] = {"type": type(error).__name__, "message": str(error)}
        # Records carry "↑" and friends; keep them readable.
        return json.dumps(entry, ensure_ascii=False)


class HumanFormatter(logging.Formatter):
    """`LEVEL logger [pipeline] (stage) message`, or `<process>` when there's no stage."""

    def format(self, record: logging.LogRecord) -> str:
        context = _context(record)
        parts = [f"{record.levelname:<8}", record.name]
        if "pipeline" in context:
            parts.append(f"[{context['pipeline']}]")
        if "stage" in context:
            parts.append(f"({context['stage']})")
        elif "process" in context:
            parts.append(f"<{context['process']}>")
        parts.append(record.getMessage())
        line = " ".join(parts)

        if record.exc_info and record.exc_info[1]:
            line += f"\n  {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return line


class PipelineLoggerAdapter(logging.LoggerAdapter[logging.Logger]):
    """Adds pipeline and stage names to every record, keeping any extra passed in."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        kwargs["extra"] = {**kwargs.get("extra", {}), **self.extra}
        return msg, kwargs


def configure_logging(level: int = logging.INFO, structured: bool = False) -> None:
    """Send sluice logs to stderr, replacing any handler set up before.

    Args:
        level: Log level (default INFO).
        structured: If True, emit JSON lines. If False, readable lines.
    """
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter() if structured else HumanFormatter())
    root_logger.addHandler(handler)
    root_logger.propagate = False


def get_logger(pipeline_name: str, stage_name: str | None = None) -> PipelineLoggerAdapter:
    """A logger under sluice.pipeline.<name> with the pipeline (and stage) attached."""
    extra = {"pipeline": pipeline_name}
    if stage_name:
        extra["stage"] = stage_name
    base_logger = logging.getLogger(f"{ROOT_LOGGER}.pipeline.{pipeline_name}")
    return PipelineLoggerAdapter(base_logger, extra)
