"""
The render run: resolve, render, review, write, record and publish.

:class:`RenderPipeline` owns one run for one :class:`~claimctl.config.RenderConfig`.
Stages whose governing option is absent are skipped; under dry-run nothing
touches the filesystem, the registry or Git.
"""

import dataclasses
import logging
from typing import Dict, List, Optional

from claimctl.config import GitPublishConfig, PRConfig, RenderConfig, resolve_credentials
from claimctl.errors import ConfigError
from claimctl.gitops import GitOpsPublisher
from claimctl.interactive import (
    DESTINATION_LOCAL,
    DESTINATION_PR,
    ask_credentials,
    ask_git_config,
    ask_output_config,
    ask_pr_config,
    choose_destination,
    collect_template_params,
    select_templates,
)
from claimctl.output import OutputWriter
from claimctl.params import TemplateParameters, merge_params, resolve
from claimctl.prompts import Prompter
from claimctl.pull_request import PullRequestCreator
from claimctl.registry import RegistryTracker
from claimctl.render import RenderBatch, RenderOrchestrator, RenderResult
from claimctl.review import ReviewController, ReviewState
from claimctl.templates import TemplateDescriptor

logger = logging.getLogger(__name__)


class RenderPipeline:
    """
    One render run.

    Args:
        config: Run configuration, built once by the CLI
        client: Render service client (``list_templates`` and ``render``)
        prompter: Prompt capability; required for interactive runs
        output: Print function for user-facing output
        pr_creator_factory: Builds the PR creator from a token
    """

    def __init__(self, config: RenderConfig, client, prompter: Optional[Prompter] = None,
                 output=print, pr_creator_factory=PullRequestCreator):
        self.config = config
        self.client = client
        self.prompter = prompter
        self._print = output
        self.pr_creator_factory = pr_creator_factory
        self.orchestrator = RenderOrchestrator(client)
        self.writer = OutputWriter(output)
        self.tracker = RegistryTracker()
        self.catalog: Dict[str, TemplateDescriptor] = {}
        self.written: List[str] = []
        self.commit_sha = ""
        self.pr_url = ""

    def run(self) -> int:
        """
        Execute the run.

        Returns:
            Process exit status: 1 when any template failed to render, else 0
        """
        if self.config.interactive and self.prompter is None:
            raise ConfigError("interactive mode needs a terminal")

        logger.info("Starting claimctl render")
        entries = self._resolve_entries()
        batch = self.orchestrator.render_all(entries)

        if self.config.interactive:
            state = ReviewController(self.prompter, self._rerender, self._print).run(batch)
            if state is ReviewState.CANCELLED:
                self._print("Cancelled.")
                return 0
            if state is ReviewState.NO_ARTIFACTS:
                return 1
            if not self._ask_destination(batch):
                self._print("Cancelled.")
                return 0
        elif batch.success_count == 0:
            logger.error("No templates rendered successfully")
            return 1

        if self.config.output.dry_run or not self.config.publish_requested:
            self._write_locally(batch)
        else:
            self._publish(batch)

        self._summary(batch)
        return 1 if batch.has_errors else 0

    def _resolve_entries(self) -> List[TemplateParameters]:
        config = self.config
        entries = resolve(config.params_file, config.templates, config.inline_params, config.interactive)

        if not entries:
            # Interactive run with nothing given: pick from the live catalog.
            catalog = self.client.list_templates()
            names = select_templates(self.prompter, catalog)
            entries = [TemplateParameters(name, {}) for name in names]

        self.catalog = self.orchestrator.validate_templates([entry.template_name for entry in entries])

        if config.interactive:
            for entry in entries:
                if not entry.parameters:
                    self._print(f"\nParameters for {entry.template_name}:")
                    entry.parameters = collect_template_params(
                        self.prompter, self.catalog[entry.template_name], output=self._print)
        return entries

    def _rerender(self, current: RenderResult) -> RenderResult:
        self._print(f"\nEdit parameters for {current.template_name}:")
        params = collect_template_params(self.prompter, self.catalog[current.template_name], output=self._print)
        return self.orchestrator.render_one(current.template_name, merge_params(current.params, params))

    def _ask_destination(self, batch: RenderBatch) -> bool:
        """
        Fill the output and publish options from prompts. False means cancelled.

        Output options given on the command line (or a dry run) are used as
        they are and no form is shown.
        """
        config = self.config
        if config.output.customized:
            logger.debug("Using output options from the command line")
            if not config.output.dry_run:
                self._ask_missing_credentials(config.git)
            return True

        successes = batch.successes()
        ask_publish = not config.publish_requested

        destination = None
        while True:
            if ask_publish:
                destination = choose_destination(self.prompter)
            if destination is None:
                use_git = config.publish_requested
            else:
                use_git = destination != DESTINATION_LOCAL

            output, go_back = ask_output_config(
                self.prompter,
                require_git_repo=use_git and not (config.git and config.git.repo_url),
                success_count=len(successes),
                example_template=successes[0].template_name,
                example_name=successes[0].resource_name,
                output=self._print,
            )
            if output is not None:
                break
            if not go_back:
                return False
            ask_publish = True

        git = config.git
        pr = config.pr
        if destination == DESTINATION_LOCAL:
            git, pr = None, None
        elif destination is not None:
            create_pr = destination == DESTINATION_PR
            git = ask_git_config(self.prompter, create_pr, config.git or GitPublishConfig())
            pr = ask_pr_config(self.prompter, config.pr or PRConfig()) if create_pr else None

        self._ask_missing_credentials(git)
        self.config = dataclasses.replace(config, output=output, git=git, pr=pr)
        return True

    def _ask_missing_credentials(self, git: Optional[GitPublishConfig]) -> None:
        if git is not None and git.push:
            git.user, git.token = resolve_credentials(git.user, git.token)
            if not (git.user and git.token):
                ask_credentials(self.prompter, git)

    def _write_locally(self, batch: RenderBatch) -> None:
        if self.config.output.dry_run and self.config.publish_requested:
            logger.info("Dry run: skipping git operations")
        self.written = self.writer.write(batch.results, self.config.output)
        if not self.config.output.dry_run:
            self.tracker.record_published(batch.results, self.config.output.directory, self.config.git)

    def _publish(self, batch: RenderBatch) -> None:
        git_config = self.config.git
        pr_config = self.config.pr

        with GitOpsPublisher(git_config) as publisher:
            output_dir = publisher.acquire(self.config.output.directory)

            pr_creator = None
            if pr_config is not None and pr_config.create:
                pr_creator = self.pr_creator_factory(publisher.token)
                pr_creator.ensure_authenticated()

            branch = publisher.prepare_branch()
            output = dataclasses.replace(self.config.output, directory=str(output_dir))
            self.written = self.writer.write(batch.results, output)
            registry_path = self.tracker.record_published(batch.results, str(output_dir), git_config)

            self.commit_sha = publisher.commit_results(batch.results, registry_path)
            self._print(f"Committed {self.commit_sha[:8]} on {branch}")

            if git_config.push:
                branch = publisher.push()
                self._print(f"Pushed {branch} to {git_config.remote}")

            if pr_creator is not None:
                self.pr_url = pr_creator.create(pr_config, branch, publisher.repo_slug(), batch.results,
                                                publisher.repo_root)
                self._print(f"\nPull Request Created: {self.pr_url}")

    def _summary(self, batch: RenderBatch) -> None:
        self._print(f"\nRendered {batch.success_count} of {len(batch)} template(s)")
        for result in batch.results:
            if not result.ok:
                self._print(f"  ✗ {result.error}")
        logger.info("claimctl render completed")
