"""
TribeSim: ui/states.py
Screen states and the frame loop that drives the simulation clock.

Every frame the active state gets on_update (where the map screen lets
SimulationLoop.update decide whether a tick is due), then on_render, then
whatever input arrived within FRAME_TIMEOUT.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import tcod

from ui.renderer import Renderer

logger = logging.getLogger(__name__)

# Seconds to wait for input per frame; the simulation advances between waits.
FRAME_TIMEOUT = 0.05


class BaseState(tcod.event.EventDispatch[Any]):
    """One screen. Receives tcod input through EventDispatch and draws itself each frame."""

    def __init__(self, engine: "Engine"):
        super().__init__()
        self.engine = engine

    def on_update(self) -> None:
        """Advance whatever this screen owns; the map screen ticks the simulation here."""

    def on_render(self, renderer: Renderer) -> None:
        """Draw the current simulation state; never mutates it."""

    def on_exit(self) -> None:
        """Window closed while this screen was active."""


class Engine:
    """
    Owns the terminal window and the active screen. Input is polled with a
    timeout rather than awaited, so simulation ticks keep arriving between
    key presses.
    """

    def __init__(self, renderer: Renderer, initial_state: Callable[["Engine"], BaseState]):
        self.renderer = renderer
        self.active_state: BaseState = initial_state(self)
        self.running = True

    def change_state(self, new_state: BaseState) -> None:
        logger.debug("Screen %s -> %s", type(self.active_state).__name__, type(new_state).__name__)
        self.active_state = new_state

    def run(self) -> None:
        """Runs frames until the window closes or a screen clears `running`."""
        with tcod.context.new_terminal(
            self.renderer.width,
            self.renderer.height,
            title=self.renderer.title,
            vsync=True,
        ) as context:
            self.renderer.context = context

            while self.running:
                self.active_state.on_update()

                self.renderer.clear()
                self.active_state.on_render(self.renderer)
                self.renderer.present(context)

                for event in tcod.event.wait(timeout=FRAME_TIMEOUT):
                    event = context.convert_event(event)

                    if isinstance(event, tcod.event.Quit):
                        self.running = False
                        break

                    self.active_state.dispatch(event)

            self.active_state.on_exit()
