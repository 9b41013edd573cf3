"""
Trial Orchestrator
Runs the trial generation stages in order and assembles the final trial record
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from config.settings import settings
from models.trial import StageResult, TrialContext, TrialResult, TrialType
from services.trial_stages import TrialStage, default_stages

logger = logging.getLogger(__name__)


class TrialOrchestrator:
    """
    Orchestrates trial generation across all stages.

    Stages run strictly in order. The first failing stage ends the run and its
    failure becomes the overall result; nothing generated by earlier stages is
    returned. Each stage is bounded by a timeout so a hung stage fails instead
    of holding the user's reserved credit.
    """

    def __init__(self, stages: Optional[List[TrialStage]] = None, stage_timeout: Optional[float] = None):
        self.stages = stages if stages is not None else default_stages()
        self.stage_timeout = stage_timeout if stage_timeout is not None else settings.stage_timeout_seconds

    async def _run_stage(self, stage: TrialStage, context: TrialContext) -> StageResult:
        try:
            result = await asyncio.wait_for(stage.execute(context), timeout=self.stage_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Stage '{stage.name}' timed out after {self.stage_timeout}s for {context.service_name}")
            return StageResult(success=False, message=f"{stage.name} generation timed out")
        except Exception as e:
            logger.error(f"Stage '{stage.name}' failed for {context.service_name}: {e}", exc_info=True)
            return StageResult(success=False, message=f"Failed to generate {stage.name}: {e}")

        if result is None:
            return StageResult(success=False, message=f"{stage.name} returned no result")
        return result

    def _aggregate(self, context: TrialContext) -> Dict[str, Any]:
        outputs = context.outputs
        data = dict(outputs.get("signup") or {})
        for key in ("profile", "email", "phone"):
            if key in outputs:
                data[key] = outputs[key]

        card = outputs.get("virtual_card")
        if card:
            data["paymentMethod"] = {
                "type": "Virtual Card",
                "last4": str(card.get("cardNumber", ""))[-4:],
                "expiryMonth": card.get("expiryMonth"),
                "expiryYear": card.get("expiryYear"),
            }
        return data

    async def generate(self, service_name: str, parameters: Optional[Dict[str, Any]], user_id: int) -> TrialResult:
        """
        Generate a trial for a specific service.

        Args:
            service_name: Service to sign up for (as typed by the user)
            parameters: Optional parameters parsed from the command
            user_id: Requesting user

        Returns:
            TrialResult; on failure it carries only the failing stage's message
        """
        logger.info(f"Starting trial generation for {service_name} (user {user_id})...")
        context = TrialContext(service_name=service_name, user_id=user_id, parameters=dict(parameters or {}))

        for stage in self.stages:
            result = await self._run_stage(stage, context)
            if not result.success:
                logger.warning(f"Trial generation for {service_name} halted at stage '{stage.name}': {result.message}")
                return TrialResult(
                    success=False,
                    trial_type=stage.trial_type,
                    data=None,
                    message=result.message or f"Failed to generate {stage.name}",
                )
            context.outputs[stage.name] = result.data or {}

        logger.info(f"Trial generation for {service_name} completed")
        return TrialResult(
            success=True,
            trial_type=TrialType.SUBSCRIPTION,
            data=self._aggregate(context),
            message=f"Successfully generated trial for {service_name}",
        )
