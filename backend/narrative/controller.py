from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

from loguru import logger

from attributes.select import DEFAULT_DENY, DEFAULT_LIMIT, feature_title, select_attributes
from geo.extent import Extent
from geo.view import fit_camera
from narrative.types import CameraDirective, ChapterSpec, Renderer

ExtentLookup = Callable[[str], "Extent | None"]


class UnknownChapter(KeyError):
    pass


class NarrativeController:
    """
    Finite-state machine from chapter-entry signals to renderer commands.

    States are the declared chapters plus the initial "nothing entered" state
    (`current is None`). Entering a chapter emits, in order: hide layers that must
    disappear, show layers that must appear, apply the camera directive, replace
    the legend.

    Signals that arrive while a transition is still awaiting the renderer are not
    queued: only the newest one is applied once the running transition finishes.
    """

    def __init__(
        self,
        chapters: Iterable[ChapterSpec],
        renderer: Renderer,
        *,
        layer_keys: Iterable[str] | None = None,
        extent_for: ExtentLookup | None = None,
        preferences: Mapping[str, list[str]] | None = None,
        deny: Iterable[str] | None = None,
        attribute_limit: int = DEFAULT_LIMIT,
        viewport: dict[str, int] | None = None,
    ):
        self._chapters: dict[str, ChapterSpec] = {}
        for c in chapters:
            self._chapters[c.name] = c
        self.renderer = renderer

        # Every layer the controller is responsible for, in draw order.
        keys: list[str] = list(layer_keys or [])
        for c in self._chapters.values():
            keys.extend(k for k in c.visible if k not in keys)
        self.layer_keys: tuple[str, ...] = tuple(dict.fromkeys(keys))

        self.extent_for = extent_for
        self.preferences = dict(preferences or {})
        self.deny = frozenset(DEFAULT_DENY if deny is None else deny)
        self.attribute_limit = attribute_limit
        self.viewport = viewport

        self._current: str | None = None
        # None until the first transition: visibility of every layer is unknown.
        self._visible: set[str] | None = None
        self._camera: CameraDirective | None = None
        self._pending: str | None = None
        self._running = False

    @property
    def current(self) -> str | None:
        return self._current

    @property
    def visible(self) -> frozenset[str]:
        return frozenset(self._visible or ())

    @property
    def camera(self) -> CameraDirective | None:
        return self._camera

    def chapter(self, name: str) -> ChapterSpec:
        try:
            return self._chapters[name]
        except KeyError:
            raise UnknownChapter(name) from None

    def visible_in(self, name: str) -> frozenset[str]:
        """What chapter `name` shows: a pure lookup, independent of the current state."""
        return frozenset(self.chapter(name).visible)

    async def on_chapter_enter(self, name: str) -> None:
        """
        Handle a chapter-entry signal.

        Unknown chapters are ignored. If a transition is in flight, the signal only
        replaces the pending target and returns; the running loop picks it up.
        """
        if name not in self._chapters:
            logger.warning(f"Ignoring unknown chapter '{name}'")
            return

        if self._running:
            if self._pending is not None and self._pending != name:
                logger.debug(f"Chapter '{self._pending}' superseded by '{name}'")
            self._pending = name
            return

        self._running = True
        self._pending = name
        try:
            while self._pending is not None:
                target = self._pending
                self._pending = None
                if target == self._current:
                    logger.debug(f"Already in chapter '{target}'")
                    continue
                try:
                    await self._transition(self._chapters[target])
                except Exception:
                    # Partially applied: no chapter is current, `_visible` holds what
                    # the renderer did apply, so re-entering any chapter redoes it.
                    self._current = None
                    if self._pending is None:
                        raise
                    logger.exception(
                        f"Chapter '{target}' failed; moving on to '{self._pending}'"
                    )
        finally:
            self._running = False

    async def _transition(self, chapter: ChapterSpec) -> None:
        previous = self._current
        target_visible = set(chapter.visible)

        if self._visible is None:
            to_hide = [k for k in self.layer_keys if k not in target_visible]
            to_show = list(chapter.visible)
        else:
            to_hide = [k for k in self.layer_keys if k in self._visible and k not in target_visible]
            to_show = [k for k in chapter.visible if k not in self._visible]

        logger.info(f"Chapter '{previous}' -> '{chapter.name}'")

        for key in to_hide:
            await self.renderer.set_layer_visibility(key, False)
            if self._visible is not None:
                self._visible.discard(key)
        if self._visible is None:
            self._visible = set()
        for key in to_show:
            await self.renderer.set_layer_visibility(key, True)
            self._visible.add(key)

        camera = self._camera_for(chapter)
        if camera is not None:
            await self.renderer.set_camera(camera)
            self._camera = camera.merged_over(self._camera)

        await self.renderer.set_legend(list(chapter.legend))
        self._current = chapter.name

    def _camera_for(self, chapter: ChapterSpec) -> CameraDirective | None:
        directive = chapter.camera
        if chapter.fit_layers and self.extent_for is not None:
            fitted = fit_camera(
                (self.extent_for(k) for k in chapter.fit_layers), viewport=self.viewport
            )
            if fitted is not None:
                center, zoom = fitted
                # Explicit chapter fields win over the fitted frame.
                directive = directive.merged_over(
                    CameraDirective(center=(center["lon"], center["lat"]), zoom=zoom)
                )
        if directive.is_empty():
            return None
        return directive

    async def inspect(self, layer_key: str, attributes: Mapping[str, Any] | None) -> list[tuple[str, Any]]:
        """
        Show the attribute panel for a feature of `layer_key`; returns the rows shown.
        """
        rows = select_attributes(
            attributes,
            self.preferences.get(layer_key, []),
            self.attribute_limit,
            deny=self.deny,
        )
        title = feature_title(attributes, fallback=layer_key)
        await self.renderer.show_attribute_panel(title, rows)
        return rows

    async def clear_inspection(self) -> None:
        await self.renderer.hide_attribute_panel()
