from __future__ import annotations

import json
from asyncio import sleep
from enum import Enum
from typing import AsyncIterator, Iterable

from loguru import logger

from geo.extent import Extent
from narrative.recording import RecordingRenderer
from narrative.story import controller_for_story
from stories.types import StoryConfig


class EventType(str, Enum):
    command = "command"
    error = "error"
    commit = "commit"


def format_event(type: EventType, data: str):
    return f"event: {type.value}\ndata: {data}\n\n"


async def narrate(
    cfg: StoryConfig,
    signals: Iterable[str],
    *,
    current: str | None = None,
    extents: dict[str, Extent | None] | None = None,
    viewport: dict[str, int] | None = None,
    pace_s: float = 0.0,
) -> AsyncIterator[str]:
    """
    Replay chapter-entry signals through a fresh controller and stream its commands.

    `current` seeds the controller with the chapter the client is already showing
    (entered silently), so only the delta for the following signals is emitted.
    """
    renderer = RecordingRenderer()
    controller = controller_for_story(
        cfg,
        renderer,
        extent_for=(extents or {}).get,
        viewport=viewport,
    )
    try:
        if current:
            await controller.on_chapter_enter(current)
            renderer.drain()

        for signal in signals:
            await controller.on_chapter_enter(signal)
            for cmd in renderer.drain():
                yield format_event(
                    EventType.command, json.dumps({**cmd, "chapter": signal}, ensure_ascii=False)
                )
            if pace_s:
                await sleep(pace_s)
    except Exception as e:
        logger.exception(f"Narration failed for story '{cfg.id}'")
        yield format_event(EventType.error, json.dumps({"message": f"{type(e).__name__}: {e}"}))

    yield format_event(EventType.commit, json.dumps({"current": controller.current}))
