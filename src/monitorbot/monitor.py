"""Change detection for watched URLs.

``check_url`` runs the pipeline for one URL: load the previous response
stored under the requested URL, fetch, compare raw bodies, render both sides
and report the difference, then persist the new response. ``run`` drives a
list of URLs strictly one after another.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

import structlog

from monitorbot.cache_key import cache_key
from monitorbot.differ import report, write_report
from monitorbot.errors import MonitorbotError
from monitorbot.renderer import render_html

if TYPE_CHECKING:
    from collections.abc import Iterable

    from monitorbot.state import AppState

log = structlog.get_logger()

UrlOutcome = Literal["new", "changed", "unchanged"]


@dataclass
class RunSummary:
    """Outcome of every URL in a batch."""

    outcomes: dict[str, UrlOutcome] = field(default_factory=dict)
    failures: dict[str, MonitorbotError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


async def check_url(url: str, state: AppState) -> UrlOutcome:
    """Fetch ``url`` and report what changed since the previous run."""
    url_log = log.bind(url=url)
    requested_key = cache_key(url)

    # The baseline is whatever was last seen for this exact requested URL,
    # through its alias if it redirected last time.
    old = state.store.load(requested_key)
    new = await state.fetcher.fetch(url)

    if new.url != url:
        url_log.info("redirected", final_url=new.url)

    if old is not None and old.body == new.body:
        url_log.info("page_unchanged", reason="identical_body")
        state.store.commit(requested_key, new)
        return "unchanged"

    old_markdown = render_html(old.text(), old.url) if old is not None else ""
    new_markdown = render_html(new.text(), new.url)

    if state.settings.output.no_diff:
        state.sink.write_text(new_markdown)
    elif new_markdown != old_markdown:
        changed_lines = write_report(report(old_markdown, new_markdown), state.sink)
        url_log.info("page_changed", changed_lines=changed_lines)
    else:
        url_log.info("page_unchanged", reason="identical_rendering")

    state.store.commit(requested_key, new)

    if old is None:
        return "new"
    return "changed" if new_markdown != old_markdown else "unchanged"


async def run(urls: Iterable[str], state: AppState) -> RunSummary:
    """Check each URL in order.

    By default the first failure aborts the batch and propagates. With
    ``run.isolate_failures`` failures are logged and collected instead.
    """
    summary = RunSummary()

    for url in urls:
        try:
            summary.outcomes[url] = await check_url(url, state)
        except MonitorbotError as exc:
            if not state.settings.run.isolate_failures:
                raise
            log.warning(
                "url_failed",
                url=url,
                code=exc.code,
                message=exc.message,
                suggestion=exc.suggestion,
            )
            summary.failures[url] = exc

    log.info(
        "run_complete",
        checked=len(summary.outcomes),
        failed=len(summary.failures),
    )
    return summary
