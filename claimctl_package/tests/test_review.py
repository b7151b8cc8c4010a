from __future__ import annotations

from claimctl.errors import RenderError, RenderServiceError
from claimctl.render import RenderBatch, RenderResult
from claimctl.review import ReviewController, ReviewState

from conftest import ScriptedPrompter


def _ok(template: str, name: str) -> RenderResult:
    return RenderResult(template, name, content=f"metadata:\n  name: {name}\n", params={"name": name})


def _failed(template: str) -> RenderResult:
    return RenderResult(template, "output", error=RenderError(template, RenderServiceError("boom")))


def _silent(*args) -> None:
    pass


def test_continue_is_terminal() -> None:
    prompter = ScriptedPrompter(["continue"])
    controller = ReviewController(prompter, rerender=lambda r: r, output=_silent)

    state = controller.run(RenderBatch([_ok("t", "a")]))

    assert state is ReviewState.CONTINUE
    assert controller.history == [ReviewState.REVIEWING, ReviewState.CONTINUE]


def test_cancel_is_terminal() -> None:
    controller = ReviewController(ScriptedPrompter(["cancel"]), rerender=lambda r: r, output=_silent)

    assert controller.run(RenderBatch([_ok("t", "a")])) is ReviewState.CANCELLED


def test_no_successes_ends_without_prompting() -> None:
    prompter = ScriptedPrompter([])
    controller = ReviewController(prompter, rerender=lambda r: r, output=_silent)

    state = controller.run(RenderBatch([_failed("t")]))

    assert state is ReviewState.NO_ARTIFACTS
    assert prompter.asked == []


def test_single_result_edit_is_auto_selected_and_replaced_in_place() -> None:
    prompter = ScriptedPrompter(["edit", "continue"])
    batch = RenderBatch([_ok("t", "before")])
    controller = ReviewController(prompter, rerender=lambda r: _ok(r.template_name, "after"), output=_silent)

    state = controller.run(batch)

    assert state is ReviewState.CONTINUE
    assert batch.results[0].resource_name == "after"
    assert [kind for kind, _ in prompter.asked] == ["select", "select"]
    assert controller.history == [
        ReviewState.REVIEWING,
        ReviewState.EDITING,
        ReviewState.REVIEWING,
        ReviewState.CONTINUE,
    ]


def test_failed_result_can_be_edited_into_success() -> None:
    prompter = ScriptedPrompter(["edit", "1", "edit", "0", "continue"])
    batch = RenderBatch([_ok("a", "first"), _failed("b")])
    edited = []

    def rerender(result: RenderResult) -> RenderResult:
        edited.append(result.template_name)
        return _ok(result.template_name, f"{result.template_name}-fixed")

    state = ReviewController(prompter, rerender=rerender, output=_silent).run(batch)

    assert state is ReviewState.CONTINUE
    assert edited == ["b", "a"]
    assert [r.resource_name for r in batch.results] == ["a-fixed", "b-fixed"]
    assert not batch.has_errors


def test_review_screen_shows_preview_and_errors() -> None:
    lines = []
    batch = RenderBatch([
        RenderResult("t", "long", content="\n".join(f"line {i}" for i in range(20))),
        _failed("broken"),
    ])

    ReviewController(ScriptedPrompter(["cancel"]), rerender=lambda r: r, output=lines.append).run(batch)

    screen = "\n".join(lines)
    assert "line 14" in screen
    assert "line 15" not in screen
    assert "... (5 more lines)" in screen
    assert "broken (ERROR:" in screen
