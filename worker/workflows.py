"""Temporal Workflows for batch contract analysis.

BatchAnalysisWorkflow processes contracts strictly one after another with a
fixed pause between items, keeping the AI provider under its rate limits.
Each contract runs:
extract_contract_text -> analyze_contract_text -> store_analysis
and a failed contract is marked failed without stopping the batch.
"""

import asyncio
from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from worker.activities import (
        analyze_contract_text,
        extract_contract_text,
        mark_contract_failed,
        store_analysis,
    )

# Errors that mean the upload itself is unusable
EXTRACTION_FINAL_ERRORS = [
    "FormatMismatchError",
    "ExtractionError",
    "PDFValidationError",
    "PDFParseError",
    "DOCXParseError",
    "InsufficientTextError",
    "ValueError",
]

# Same-model retry for a chain that ended on overload/rate limit:
# waits 5s, 10s, 20s, 40s between the five attempts
ANALYSIS_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=5),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(seconds=40),
    maximum_attempts=5,
)


@workflow.defn
class BatchAnalysisWorkflow:
    """Workflow that analyses a batch of stored contracts sequentially."""

    @workflow.run
    async def run(self, batch_id: str, contract_ids: list[str], item_delay_s: float = 10.0) -> dict:
        """Execute the batch.

        Args:
            batch_id: Identifier of the batch (for logging).
            contract_ids: Contracts to analyse, in order.
            item_delay_s: Pause between consecutive contracts.

        Returns:
            Dict with batch_id, total, succeeded, failed and per-item results.
        """
        workflow.logger.info(
            "Starting batch %s with %d contract(s)", batch_id, len(contract_ids)
        )

        results = []
        for index, contract_id in enumerate(contract_ids):
            if index > 0 and item_delay_s > 0:
                await asyncio.sleep(item_delay_s)
            results.append(await self._process(contract_id))

        succeeded = sum(1 for r in results if r["status"] == "completed")
        workflow.logger.info(
            "Batch %s finished: %d succeeded, %d failed",
            batch_id,
            succeeded,
            len(results) - succeeded,
        )
        return {
            "batch_id": batch_id,
            "total": len(results),
            "succeeded": succeeded,
            "failed": len(results) - succeeded,
            "results": results,
        }

    async def _process(self, contract_id: str) -> dict:
        try:
            prepared = await workflow.execute_activity(
                extract_contract_text,
                contract_id,
                start_to_close_timeout=timedelta(minutes=5),
                retry_policy=RetryPolicy(
                    maximum_attempts=2,
                    non_retryable_error_types=EXTRACTION_FINAL_ERRORS,
                ),
            )

            analyzed = await workflow.execute_activity(
                analyze_contract_text,
                args=[contract_id, prepared],
                start_to_close_timeout=timedelta(minutes=5),
                retry_policy=ANALYSIS_RETRY_POLICY,
            )

            # Idempotent upsert - safe to retry on transient DB errors
            await workflow.execute_activity(
                store_analysis,
                args=[contract_id, analyzed],
                start_to_close_timeout=timedelta(minutes=1),
                retry_policy=RetryPolicy(maximum_attempts=3),
            )
        except ActivityError as e:
            message = str(e.cause or e)
            workflow.logger.warning("Contract %s failed: %s", contract_id, message)
            await workflow.execute_activity(
                mark_contract_failed,
                args=[contract_id, message],
                start_to_close_timeout=timedelta(minutes=1),
                retry_policy=RetryPolicy(maximum_attempts=3),
            )
            return {"contract_id": contract_id, "status": "failed", "error": message}

        return {
            "contract_id": contract_id,
            "status": "completed",
            "model_used": analyzed["model_used"],
            "risk_score": analyzed["analysis"]["riskScore"],
        }


__all__ = ["ANALYSIS_RETRY_POLICY", "BatchAnalysisWorkflow"]
