"""Promote workflows from one environment to another."""

from __future__ import annotations
import asyncio
import logging
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from flowpromote.backup.engine import create_backup
from flowpromote.client import RemoteEnvironmentClient
from flowpromote.credentials import (
    CredentialTransform,
    DuplicateCredentialMappingError,
    build_credential_transform,
)
from flowpromote.deploy.errors import (
    DeployError,
    DeploymentPipelineError,
    DeploymentValidationError,
    PrepareError,
    RecordExistsError,
    TransformError,
    VerifyError,
)
from flowpromote.deploy.records import DeploymentRecordStore, generate_deployment_id
from flowpromote.deploy.transform import transform_credentials_in_workflow
from flowpromote.models.deployment import (
    DeployAction,
    DeployedWorkflow,
    DeploymentFailure,
    DeploymentOptions,
    DeploymentRecord,
    DeploymentResult,
    DeploymentSummary,
    DeploymentTarget,
    RecordedWorkflow,
)
from flowpromote.models.environment import EnvironmentCatalog
from flowpromote.models.workflow import WorkflowDefinition, WorkflowSummary
from flowpromote.transfer import (
    TransferMode,
    apply_transfer,
    find_workflow_by_name,
    index_by_name,
    plan_action,
)


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ValidationResult:
    """Outcome of :meth:`DeploymentPipeline.validate`."""

    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PrepareResult:
    """Everything the per-workflow phases need, gathered before any write."""

    workflows: list[WorkflowDefinition]
    credential_transform: CredentialTransform
    target_inventory: dict[str, WorkflowSummary] = field(default_factory=dict)


def _transfer_mode(options: DeploymentOptions) -> TransferMode:
    return TransferMode.UPSERT if options.overwrite else TransferMode.CREATE


class DeploymentPipeline:
    """Run validate, prepare, transform, deploy and verify for one target pair.

    The pipeline talks to exactly two environments through the clients given
    at construction. Each workflow is transformed, deployed and verified on its
    own; a failure is recorded against that workflow and the run continues.
    """

    def __init__(
        self,
        source_client: RemoteEnvironmentClient,
        target_client: RemoteEnvironmentClient,
        catalog: EnvironmentCatalog,
        *,
        record_store: DeploymentRecordStore | None = None,
        backup_dir: Path | str | None = None,
        strip_backup_credentials: bool = False,
    ) -> None:
        """Bind the pipeline to its environments and optional state stores."""
        self.source_client = source_client
        self.target_client = target_client
        self.catalog = catalog
        self.record_store = record_store
        self.backup_dir = Path(backup_dir) if backup_dir is not None else None
        self.strip_backup_credentials = strip_backup_credentials

    def _credential_transform(self, target: DeploymentTarget) -> CredentialTransform:
        return build_credential_transform(
            self.catalog.credential_mappings, target.source_env, target.target_env
        )

    async def _probe(
        self, role: str, env_name: str, client: RemoteEnvironmentClient
    ) -> str | None:
        try:
            healthy = await client.health_check()
        except Exception as exc:
            return f"Health check of {role} environment '{env_name}' failed: {exc}"
        if not healthy:
            return f"Cannot connect to {role} environment '{env_name}'"
        return None

    async def validate(self, target: DeploymentTarget) -> ValidationResult:
        """Check that ``target`` can be deployed without touching either side."""
        errors: list[str] = []
        if not self.catalog.has_environment(target.source_env):
            errors.append(f"Source environment '{target.source_env}' not found")
        if not self.catalog.has_environment(target.target_env):
            errors.append(f"Target environment '{target.target_env}' not found")
        if target.source_env == target.target_env:
            errors.append("Source and target environments are the same")

        if not errors:
            probes = await asyncio.gather(
                self._probe("source", target.source_env, self.source_client),
                self._probe("target", target.target_env, self.target_client),
            )
            errors.extend(problem for problem in probes if problem)

        if target.has_explicit_workflows and not errors:
            try:
                inventory = await self.source_client.get_all_workflows()
            except Exception as exc:
                errors.append(
                    f"Could not list workflows of source environment "
                    f"'{target.source_env}': {exc}"
                )
            else:
                known = {workflow.id for workflow in inventory}
                for workflow_id in target.workflow_ids or ():
                    if workflow_id not in known:
                        errors.append(
                            f"Workflow '{workflow_id}' not found in source "
                            f"environment '{target.source_env}'"
                        )

        transform = self._credential_transform(target)
        if self.catalog.credential_mappings and transform.is_empty():
            errors.append(
                f"No credential mappings apply between '{target.source_env}' "
                f"and '{target.target_env}'"
            )
        try:
            transform.ensure_unique()
        except DuplicateCredentialMappingError as exc:
            errors.append(str(exc))

        return ValidationResult(valid=not errors, errors=errors)

    async def prepare(self, target: DeploymentTarget) -> PrepareResult:
        """Fetch the workflows to deploy and the target inventory.

        Raises:
            PrepareError: when any read fails or the credential table is
                ambiguous.
        """
        try:
            source_inventory, target_inventory = await asyncio.gather(
                self.source_client.get_all_workflows(),
                self.target_client.get_all_workflows(),
            )
            if target.has_explicit_workflows:
                workflow_ids = list(target.workflow_ids or ())
            else:
                workflow_ids = [workflow.id for workflow in source_inventory]
            workflows = await asyncio.gather(
                *(self.source_client.get_workflow(item) for item in workflow_ids)
            )
        except Exception as exc:
            msg = f"Failed to prepare deployment: {exc}"
            raise PrepareError(msg) from exc

        try:
            transform = self._credential_transform(target).ensure_unique()
        except DuplicateCredentialMappingError as exc:
            raise PrepareError(str(exc)) from exc

        return PrepareResult(
            workflows=list(workflows),
            credential_transform=transform,
            target_inventory=index_by_name(target_inventory),
        )

    def transform_credentials(
        self, workflow: WorkflowDefinition, transform: CredentialTransform
    ) -> tuple[WorkflowDefinition, int]:
        """Return a rewritten copy of ``workflow`` and the rewrite count."""
        try:
            result = transform_credentials_in_workflow(workflow, transform)
        except Exception as exc:
            raise TransformError(
                f"Failed to transform credentials: {exc}",
                workflow_id=workflow.id or "",
                workflow_name=workflow.name,
            ) from exc
        if result.stats.credentials_unmapped:
            logger.debug(
                "Workflow '%s' keeps unmapped credential(s): %s",
                workflow.name,
                ", ".join(result.stats.credentials_unmapped),
            )
        return result.workflow, result.stats.credentials_transformed

    async def deploy(
        self,
        workflow: WorkflowDefinition,
        credentials_transformed: int,
        options: DeploymentOptions | None = None,
        target_inventory: MutableMapping[str, WorkflowSummary] | None = None,
    ) -> DeployedWorkflow:
        """Create, update, or skip ``workflow`` in the target environment.

        The existing target workflow is found by name. Without
        ``target_inventory`` the target is listed on every call.
        """
        opts = options or DeploymentOptions()
        try:
            if target_inventory is not None:
                existing = target_inventory.get(workflow.name)
            else:
                existing = await find_workflow_by_name(
                    self.target_client, workflow.name
                )
            outcome = await apply_transfer(
                self.target_client,
                workflow,
                existing,
                _transfer_mode(opts),
                activate=opts.activate_after_deploy,
                inventory=target_inventory,
            )
        except Exception as exc:
            raise DeployError(
                str(exc),
                workflow_id=workflow.id or "",
                workflow_name=workflow.name,
            ) from exc
        return DeployedWorkflow(
            workflow_id=workflow.id or "",
            workflow_name=workflow.name,
            target_id=outcome.target_id,
            action=outcome.action,
            credentials_transformed=credentials_transformed,
            previous_target_id=outcome.previous_target_id,
        )

    async def verify(self, target_id: str) -> bool:
        """Return whether ``target_id`` can be read back from the target."""
        try:
            await self.target_client.get_workflow(target_id)
        except Exception as exc:
            logger.warning("Verification of %s failed: %s", target_id, exc)
            return False
        return True

    def _plan(
        self, prepared: PrepareResult, options: DeploymentOptions
    ) -> list[DeployedWorkflow]:
        mode = _transfer_mode(options)
        planned: list[DeployedWorkflow] = []
        for workflow in prepared.workflows:
            transformed = transform_credentials_in_workflow(
                workflow, prepared.credential_transform
            )
            existing = prepared.target_inventory.get(workflow.name)
            planned.append(
                DeployedWorkflow(
                    workflow_id=workflow.id or "",
                    workflow_name=workflow.name,
                    target_id=None,
                    action=DeployAction.SKIPPED,
                    credentials_transformed=transformed.stats.credentials_transformed,
                    previous_target_id=existing.id if existing else None,
                    planned_action=plan_action(existing, mode),
                )
            )
        return planned

    async def _backup_target(self, target: DeploymentTarget) -> str | None:
        if self.backup_dir is None:
            logger.info("No backup directory configured; skipping backup")
            return None
        environment = self.catalog.find_environment(target.target_env)
        base_url = environment.connection.url if environment else ""
        result = await create_backup(
            self.target_client,
            base_dir=self.backup_dir,
            environment=target.target_env,
            base_url=base_url,
            strip_credentials=self.strip_backup_credentials,
            description=f"Before deployment from {target.source_env}",
        )
        if not result.success or result.backup_path is None:
            reason = result.error or (
                f"{result.failed_count} workflow(s) could not be backed up"
            )
            msg = f"Pre-deployment backup failed: {reason}"
            raise PrepareError(msg)
        logger.info("Backed up %s to %s", target.target_env, result.backup_path)
        return result.backup_path

    def _write_record(
        self,
        target: DeploymentTarget,
        outcomes: list[DeployedWorkflow],
        started: datetime,
        backup_path: str | None,
    ) -> str | None:
        if self.record_store is None:
            return None
        resources = tuple(
            RecordedWorkflow(
                original_id=outcome.workflow_id,
                target_id=outcome.target_id,
                previous_target_id=outcome.previous_target_id,
            )
            for outcome in outcomes
            if outcome.action.is_mutation and outcome.target_id
        )
        if not resources:
            return None
        record = DeploymentRecord(
            id=generate_deployment_id(started),
            timestamp=started,
            source_env=target.source_env,
            target_env=target.target_env,
            resources=resources,
            backup_path=backup_path,
        )
        try:
            self.record_store.write(record)
        except (OSError, RecordExistsError) as exc:
            logger.error("Could not write deployment record %s: %s", record.id, exc)
            return None
        return record.id

    def _aborted(
        self,
        target: DeploymentTarget,
        started: datetime,
        options: DeploymentOptions,
        errors: list[DeploymentFailure],
    ) -> DeploymentResult:
        return DeploymentResult(
            success=False,
            timestamp=started,
            source_env=target.source_env,
            target_env=target.target_env,
            dry_run=options.dry_run,
            errors=errors,
        )

    async def run_pipeline(
        self,
        target: DeploymentTarget,
        options: DeploymentOptions | None = None,
    ) -> DeploymentResult:
        """Run every phase for ``target`` and summarize the outcome."""
        opts = options or DeploymentOptions()
        started = datetime.now(tz=UTC)
        logger.info(
            "Deploying %s -> %s (dry_run=%s, overwrite=%s)",
            target.source_env,
            target.target_env,
            opts.dry_run,
            opts.overwrite,
        )

        if not opts.skip_validation:
            validation = await self.validate(target)
            if not validation.valid:
                logger.warning("Validation failed: %s", "; ".join(validation.errors))
                failures = [
                    DeploymentValidationError(message).to_failure()
                    for message in validation.errors
                ]
                return self._aborted(target, started, opts, failures)

        try:
            prepared = await self.prepare(target)
        except PrepareError as exc:
            logger.warning("Prepare failed: %s", exc)
            return self._aborted(target, started, opts, [exc.to_failure()])
        logger.info("Prepared %d workflow(s)", len(prepared.workflows))

        if opts.dry_run:
            planned = self._plan(prepared, opts)
            return DeploymentResult(
                success=True,
                timestamp=started,
                source_env=target.source_env,
                target_env=target.target_env,
                dry_run=True,
                workflows=planned,
                summary=DeploymentSummary.from_outcomes(planned, failed=0),
            )

        backup_path: str | None = None
        if opts.create_backup:
            try:
                backup_path = await self._backup_target(target)
            except PrepareError as exc:
                logger.warning("%s", exc)
                return self._aborted(target, started, opts, [exc.to_failure()])

        outcomes: list[DeployedWorkflow] = []
        errors: list[DeploymentFailure] = []
        failed = 0
        for workflow in prepared.workflows:
            try:
                transformed, count = self.transform_credentials(
                    workflow, prepared.credential_transform
                )
                outcome = await self.deploy(
                    transformed, count, opts, prepared.target_inventory
                )
            except DeploymentPipelineError as exc:
                logger.warning("Workflow '%s' failed: %s", workflow.name, exc)
                errors.append(exc.to_failure())
                failed += 1
                continue
            outcomes.append(outcome)

            if outcome.action.is_mutation and outcome.target_id:
                if not await self.verify(outcome.target_id):
                    errors.append(
                        VerifyError(
                            "Deployed workflow not found in target environment",
                            workflow_id=outcome.workflow_id,
                            workflow_name=outcome.workflow_name,
                        ).to_failure()
                    )

        summary = DeploymentSummary.from_outcomes(outcomes, failed=failed)
        record_id = self._write_record(target, outcomes, started, backup_path)
        logger.info(
            "Deployment finished: %d created, %d updated, %d skipped, %d failed",
            summary.created,
            summary.updated,
            summary.skipped,
            summary.failed,
        )
        return DeploymentResult(
            success=not errors,
            timestamp=started,
            source_env=target.source_env,
            target_env=target.target_env,
            workflows=outcomes,
            summary=summary,
            errors=errors,
            backup_path=backup_path,
            record_id=record_id,
        )


__all__ = ["DeploymentPipeline", "PrepareResult", "ValidationResult"]
