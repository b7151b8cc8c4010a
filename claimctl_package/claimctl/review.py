"""
Review/edit loop for interactively rendered claims.

The loop is a small state machine::

    REVIEWING --continue--> CONTINUE
    REVIEWING --cancel----> CANCELLED
    REVIEWING --edit------> EDITING --> REVIEWING
    (no successful render) NO_ARTIFACTS

``CONTINUE``, ``CANCELLED`` and ``NO_ARTIFACTS`` are terminal. There is no
bound on the number of edits.
"""

import enum
import logging
from typing import Callable, List, Optional

from claimctl.output import truncate_preview
from claimctl.prompts import Prompter
from claimctl.render import RenderBatch, RenderResult

logger = logging.getLogger(__name__)

PREVIEW_LINES = 15

ACTION_CONTINUE = "continue"
ACTION_EDIT = "edit"
ACTION_CANCEL = "cancel"


class ReviewState(enum.Enum):
    REVIEWING = "reviewing"
    EDITING = "editing"
    CONTINUE = "continue"
    CANCELLED = "cancelled"
    NO_ARTIFACTS = "no_artifacts"

    @property
    def terminal(self) -> bool:
        return self in (ReviewState.CONTINUE, ReviewState.CANCELLED, ReviewState.NO_ARTIFACTS)


Rerender = Callable[[RenderResult], RenderResult]


class ReviewController:
    """
    Runs the review loop over a render batch.

    Args:
        prompter: Prompt capability used for every question
        rerender: Called with the result being edited; collects new parameters,
            renders again and returns the replacement result
        output: Print function for the review screen
    """

    def __init__(self, prompter: Prompter, rerender: Rerender, output=print):
        self.prompter = prompter
        self.rerender = rerender
        self._print = output
        self.edit_index: Optional[int] = None
        self.history: List[ReviewState] = []

    def run(self, batch: RenderBatch) -> ReviewState:
        state = ReviewState.REVIEWING
        while not state.terminal:
            self.history.append(state)
            state = self.step(state, batch)
        self.history.append(state)
        return state

    def step(self, state: ReviewState, batch: RenderBatch) -> ReviewState:
        if state is ReviewState.REVIEWING:
            return self._review(batch)
        if state is ReviewState.EDITING:
            return self._edit(batch)
        return state

    def _review(self, batch: RenderBatch) -> ReviewState:
        self._show(batch)

        if batch.success_count == 0:
            self._print("No successful renders to save.")
            return ReviewState.NO_ARTIFACTS

        action = self.prompter.select(
            "What would you like to do?",
            [
                ("Continue to save", ACTION_CONTINUE),
                ("Edit a template's parameters", ACTION_EDIT),
                ("Cancel", ACTION_CANCEL),
            ],
        )
        if action == ACTION_CONTINUE:
            return ReviewState.CONTINUE
        if action == ACTION_EDIT:
            self.edit_index = self._choose(batch)
            return ReviewState.EDITING
        return ReviewState.CANCELLED

    def _choose(self, batch: RenderBatch) -> int:
        if len(batch.results) == 1:
            return 0
        options = []
        for index, result in enumerate(batch.results):
            label = f"{result.template_name} ({result.resource_name})"
            if not result.ok:
                label += " [failed]"
            options.append((label, str(index)))
        return int(self.prompter.select("Which template do you want to edit?", options))

    def _edit(self, batch: RenderBatch) -> ReviewState:
        index = self.edit_index
        current = batch.results[index]
        logger.info(f"Editing {current.template_name}")
        batch.results[index] = self.rerender(current)
        self.edit_index = None
        return ReviewState.REVIEWING

    def _show(self, batch: RenderBatch) -> None:
        self._print("\n━━━ Review Rendered Resources ━━━")
        for result in batch.results:
            if not result.ok:
                self._print(f"\n✗ {result.template_name} (ERROR: {result.error})")
                continue
            self._print(f"\n{result.template_name} ({result.resource_name}):")
            self._print(truncate_preview(result.content, PREVIEW_LINES))
