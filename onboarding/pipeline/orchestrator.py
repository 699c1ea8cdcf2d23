"""Job Orchestrator - runs the four stages of a job in order.

State machine:
    QUEUED → CLASSIFICATION → GENERAL_EXTRACTION → SPECIALIZED_EXTRACTION
           → TAB_POPULATION → COMPLETE
Any stage may abort into FAILED with ``current_stage`` set to the failing
stage. Each stage's output is persisted before the next stage starts, and
the quality gate runs between stages: ``fail`` aborts (unless forced),
``review`` continues with a confidence penalty on the final items.
"""

import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import structlog

from onboarding.config.settings import Settings
from onboarding.evaluation.evaluator import QualityGate
from onboarding.evaluation.models import EvalResult
from onboarding.extraction.content import LoadedContent
from onboarding.llm.gateway import ModelGateway
from onboarding.models.enums import (
    STAGE_ORDER,
    JobStatus,
    PipelineStage,
    StageStatus,
    Verdict,
)
from onboarding.models.job import Job, StageProgress
from onboarding.models.results import QualityFlag
from onboarding.pipeline.errors import STAGE_LABELS, PipelineError, QualityGateError
from onboarding.pipeline.models import StageContext
from onboarding.pipeline.stages import (
    classify_content,
    extract_general,
    extract_specialized,
    populate_tabs,
)
from onboarding.storage.job_store import JobStore

logger = structlog.get_logger(__name__)

# Share of a stage's progress bar given to the executor; the rest is evaluation.
EXECUTOR_PROGRESS_SHARE = 0.8

ProgressListener = Callable[[str, StageProgress], Awaitable[None]]


def _flag_warning(flag: QualityFlag) -> str:
    prefix = "Forced past failed" if flag.forced else "Review requested by"
    return f"{prefix} quality gate '{flag.judge}' at {flag.stage.value}: {flag.message}"


class JobOrchestrator:
    """Drives one job through the pipeline stages."""

    def __init__(
        self,
        store: JobStore,
        gateway: ModelGateway,
        quality_gate: QualityGate,
        settings: Settings,
    ):
        self.store = store
        self.gateway = gateway
        self.quality_gate = quality_gate
        self.settings = settings

    async def start(
        self,
        job_id: str,
        content: LoadedContent,
        from_stage: PipelineStage = PipelineStage.CLASSIFICATION,
        force: bool = False,
        on_progress: Optional[ProgressListener] = None,
    ) -> Job:
        """Run the job from ``from_stage`` to a terminal state.

        Outputs of stages before ``from_stage`` are loaded from what earlier
        attempts persisted.

        Args:
            job_id: Job to run.
            content: Loaded source content.
            from_stage: First stage to execute.
            force: Downgrade quality-gate failures to review.
            on_progress: Optional listener called after every progress update.

        Returns:
            The job as persisted at the end of the run.
        """
        job = await self.store.require_job(job_id)
        run_start = time.monotonic()
        stage = from_stage
        # Verdicts from stages this attempt does not re-run still apply
        flags = [f for f in job.quality_flags if f.stage.order < from_stage.order]
        warnings = [_flag_warning(f) for f in flags]

        logger.info(
            "pipeline_start",
            job_id=job_id,
            from_stage=from_stage.value,
            attempt=job.retry_count,
            force=force,
        )

        async def publish(progress: StageProgress) -> None:
            await self.store.update_job(job_id, stage_progress=progress)
            if on_progress is not None:
                await on_progress(job_id, progress)

        try:
            await self.store.update_job(
                job_id,
                status=JobStatus.PROCESSING,
                current_stage=from_stage,
                started_at=job.started_at or datetime.utcnow(),
                error=None,
                quality_flags=flags,
            )

            ctx = await self._build_context(job, content)
            if flags:
                ctx.review_penalty = self.settings.review_confidence_penalty

            for stage in STAGE_ORDER[from_stage.order:]:
                ctx.report = self._reporter(stage, publish)
                await self.store.update_job(
                    job_id,
                    current_stage=stage,
                    stage_progress=StageProgress(
                        stage=stage,
                        status=StageStatus.RUNNING,
                        message=f"{STAGE_LABELS[stage]} started",
                    ),
                )
                if on_progress is not None:
                    await on_progress(job_id, StageProgress(stage=stage, status=StageStatus.RUNNING))

                stage_start = time.monotonic()
                logger.info(f"stage_{stage.order + 1}_{stage.value.lower()}_start", job_id=job_id)

                if stage == PipelineStage.CLASSIFICATION:
                    result = await classify_content(ctx)
                    warnings.extend(result.warnings)
                    ctx.classification = result.output
                    # Low confidence stays visible on the job even if the gate fails
                    await self.store.update_job(job_id, classification_result=ctx.classification)
                    evaluation = await self._evaluate(
                        stage, publish,
                        self.quality_gate.evaluate_classification(content.text, ctx.classification),
                    )
                    self._apply_verdict(ctx, evaluation, force, flags, warnings)
                    await self.store.update_job(
                        job_id,
                        quality_flags=flags,
                        stage_progress=self._complete_progress(stage, {
                            "type": ctx.classification.type.value,
                            "confidence": ctx.classification.confidence,
                        }),
                    )

                elif stage == PipelineStage.GENERAL_EXTRACTION:
                    result = await extract_general(ctx)
                    warnings.extend(result.warnings)
                    ctx.general = result.output
                    evaluation = await self._evaluate(
                        stage, publish,
                        self.quality_gate.evaluate_extraction(content.text, ctx.classification, ctx.general),
                    )
                    self._apply_verdict(ctx, evaluation, force, flags, warnings)
                    await self.store.update_job(job_id, quality_flags=flags)
                    extraction_id = await self.store.save_raw_extraction(job, ctx.classification, ctx.general)
                    await self.store.update_job(
                        job_id,
                        stage_progress=self._complete_progress(stage, {
                            "entities": ctx.general.total_entities,
                            "raw_extraction_id": extraction_id,
                        }),
                    )

                elif stage == PipelineStage.SPECIALIZED_EXTRACTION:
                    result = await extract_specialized(ctx)
                    warnings.extend(result.warnings)
                    ctx.specialized = result.output
                    evaluation = await self._evaluate(
                        stage, publish,
                        self.quality_gate.evaluate_specialized(ctx.general, ctx.specialized),
                    )
                    self._apply_verdict(ctx, evaluation, force, flags, warnings)
                    await self.store.update_job(
                        job_id,
                        quality_flags=flags,
                        specialized_result=ctx.specialized,
                        stage_progress=self._complete_progress(stage, {
                            "items": len(ctx.specialized.items),
                            "checklist_coverage": ctx.specialized.checklist.coverage_score,
                        }),
                    )

                else:
                    result = await populate_tabs(ctx)
                    population = result.output.result.model_copy(update={
                        "warnings": warnings + result.output.result.warnings,
                        "quality_flags": flags,
                    })
                    population = await self.store.complete_with_items(
                        job_id,
                        result.output.items,
                        population,
                        self._complete_progress(stage, {"items": population.extracted_items}),
                    )
                    logger.info(
                        "stage_4_complete",
                        job_id=job_id,
                        items=population.extracted_items,
                        warnings=len(population.warnings),
                    )

                logger.info(
                    f"stage_{stage.order + 1}_{stage.value.lower()}_complete",
                    job_id=job_id,
                    duration_seconds=round(time.monotonic() - stage_start, 2),
                )

        except PipelineError as e:
            await self._fail(job_id, e.stage, e.describe(), retryable=e.retryable)
            return await self.store.require_job(job_id)
        except Exception as e:
            logger.exception("pipeline_unexpected_error", job_id=job_id, stage=stage.value)
            await self._fail(job_id, stage, f"{STAGE_LABELS[stage]} failed: {type(e).__name__}: {e}")
            return await self.store.require_job(job_id)

        logger.info(
            "pipeline_complete",
            job_id=job_id,
            duration_seconds=round(time.monotonic() - run_start, 2),
            quality_flags=len(flags),
        )
        return await self.store.require_job(job_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _build_context(self, job: Job, content: LoadedContent) -> StageContext:
        ctx = StageContext(
            job=job,
            content=content,
            gateway=self.gateway,
            classification=job.classification_result,
            specialized=job.specialized_result,
            auto_approve_threshold=self.settings.auto_approve_threshold,
        )
        if job.raw_extraction_id:
            ctx.general = await self.store.get_raw_extraction(job.raw_extraction_id)
        return ctx

    @staticmethod
    def _reporter(stage: PipelineStage, publish):
        async def report(percent: int, message: str, details: Optional[dict[str, Any]] = None) -> None:
            await publish(StageProgress(
                stage=stage,
                status=StageStatus.RUNNING,
                percent=int(min(100, max(0, percent)) * EXECUTOR_PROGRESS_SHARE),
                message=message,
                details=details,
            ))
        return report

    @staticmethod
    def _complete_progress(stage: PipelineStage, details: dict[str, Any]) -> StageProgress:
        return StageProgress(
            stage=stage,
            status=StageStatus.COMPLETE,
            percent=100,
            message=f"{STAGE_LABELS[stage]} complete",
            details=details,
        )

    async def _evaluate(self, stage: PipelineStage, publish, evaluation) -> EvalResult:
        await publish(StageProgress(
            stage=stage,
            status=StageStatus.RUNNING,
            percent=90,
            message="Evaluating quality",
        ))
        result: EvalResult = await evaluation
        logger.info(
            "quality_gate_verdict",
            stage=stage.value,
            verdict=result.verdict.value,
            score=result.overall_score,
            judges={v.judge: v.verdict.value for v in result.verdicts},
        )
        return result

    def _apply_verdict(
        self,
        ctx: StageContext,
        evaluation: EvalResult,
        force: bool,
        flags: list[QualityFlag],
        warnings: list[str],
    ) -> None:
        """Abort on fail, or record the flag and penalize items on review."""
        if evaluation.verdict == Verdict.PASS:
            return

        judge = evaluation.deciding_judge()
        judge_name = judge.judge if judge else "aggregate"
        summary = evaluation.summary()

        if evaluation.verdict == Verdict.FAIL and not force:
            raise QualityGateError(evaluation.stage, judge_name, summary)

        flag = QualityFlag(
            stage=evaluation.stage,
            verdict=Verdict.REVIEW,
            judge=judge_name,
            message=summary,
            forced=evaluation.verdict == Verdict.FAIL,
        )
        flags.append(flag)
        warnings.append(_flag_warning(flag))
        ctx.review_penalty = self.settings.review_confidence_penalty

    async def _fail(self, job_id: str, stage: PipelineStage, error: str, retryable: bool = True) -> None:
        logger.error("pipeline_failed", job_id=job_id, stage=stage.value, error=error, retryable=retryable)
        await self.store.mark_failed(job_id, stage, error)
