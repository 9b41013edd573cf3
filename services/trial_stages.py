"""
Trial generation stages.

Each stage produces one piece of a trial sign-up (profile, inbox, phone line,
payment card, the sign-up itself) behind the same execute(context) call so the
orchestrator can run any ordered list of them. Generation is placeholder data;
the output shapes are what downstream code relies on.
"""

import hashlib
import json
import logging
import random
import re
import secrets
import string
from datetime import timedelta
from typing import Optional

from config.settings import settings
from models.trial import StageResult, TrialContext, TrialType
from services.text_generation_service import TextGenerationService
from utils.shared_utils import utcnow

logger = logging.getLogger(__name__)

EMAIL_DOMAIN = "tempmail.org"
EMAIL_EXPIRES_IN = "10m"
PHONE_EXPIRES_IN = "24h"

FIRST_NAMES = ["John", "Maria", "Alex", "Priya", "Daniel", "Sofia", "Liam", "Emma", "Noah", "Aiko"]
LAST_NAMES = ["Doe", "Garcia", "Smith", "Patel", "Kim", "Rossi", "Novak", "Brown", "Silva", "Tanaka"]
OCCUPATIONS = ["Software Developer", "Teacher", "Designer", "Nurse", "Accountant", "Photographer", "Student"]
INTERESTS = ["technology", "music", "travel", "movies", "cooking", "fitness", "gaming", "reading", "art"]


class TrialStage:
    """
    One independently failable step of trial generation.

    Subclasses set name and trial_type and implement execute().
    """

    name = "stage"
    trial_type = TrialType.SUBSCRIPTION

    async def execute(self, context: TrialContext) -> StageResult:
        raise NotImplementedError

    def ok(self, data: dict, message: str) -> StageResult:
        return StageResult(success=True, data=data, message=message)

    def fail(self, message: str) -> StageResult:
        return StageResult(success=False, data=None, message=message)


class ProfileStage(TrialStage):
    """Synthesizes a sign-up profile, using the text-generation service when available."""

    name = "profile"
    trial_type = TrialType.PROFILE

    def __init__(self, text_service: Optional[TextGenerationService] = None):
        self.text_service = text_service or TextGenerationService()

    def _build_prompt(self, context: TrialContext) -> str:
        prompt = (
            f"Generate a realistic user profile for signing up to {context.service_name}. "
            "Include: firstName, lastName, username, age, interests (as an array), and occupation. "
            "Format the response as valid JSON with just those fields."
        )
        if context.parameters:
            prompt += f" Consider these additional requirements: {json.dumps(context.parameters)}"
        return prompt

    def _parse_profile(self, text: str) -> Optional[dict]:
        fenced = re.search(r"```(?:json)?(.*?)```", text, re.DOTALL)
        candidate = fenced.group(1) if fenced else text
        braces = re.search(r"\{.*\}", candidate, re.DOTALL)
        if not braces:
            return None
        try:
            profile = json.loads(braces.group(0))
        except json.JSONDecodeError:
            return None
        if not isinstance(profile, dict) or not profile.get("username"):
            return None
        return profile

    def mock_profile(self, context: TrialContext) -> dict:
        """Deterministic profile for a (service, user) pair."""
        seed = hashlib.sha256(f"{context.service_name.lower()}:{context.user_id}".encode()).hexdigest()
        rng = random.Random(seed)
        first = rng.choice(FIRST_NAMES)
        last = rng.choice(LAST_NAMES)
        return {
            "firstName": first,
            "lastName": last,
            "username": f"{first}{last}{rng.randint(100, 999)}".lower(),
            "age": rng.randint(21, 58),
            "interests": rng.sample(INTERESTS, 3),
            "occupation": rng.choice(OCCUPATIONS),
        }

    async def execute(self, context: TrialContext) -> StageResult:
        logger.info(f"Generating profile for {context.service_name}...")

        profile = None
        reply = await self.text_service.complete(self._build_prompt(context))
        if reply:
            profile = self._parse_profile(reply)
            if profile is None:
                logger.warning(f"Could not parse generated profile for {context.service_name} - using fallback")

        if profile is None:
            profile = self.mock_profile(context)

        return self.ok(profile, f"Generated profile for {context.service_name}")


class EmailStage(TrialStage):
    name = "email"
    trial_type = TrialType.EMAIL

    async def execute(self, context: TrialContext) -> StageResult:
        logger.info(f"Generating email for {context.service_name}...")
        username = f"user{secrets.randbelow(10000)}"
        alphabet = string.ascii_lowercase + string.digits
        return self.ok(
            {
                "email": f"{username}@{EMAIL_DOMAIN}",
                "accessKey": "".join(secrets.choice(alphabet) for _ in range(13)),
                "expiresIn": EMAIL_EXPIRES_IN,
            },
            f"Generated email for {context.service_name}",
        )


class PhoneStage(TrialStage):
    name = "phone"
    trial_type = TrialType.PHONE_NUMBER

    async def execute(self, context: TrialContext) -> StageResult:
        logger.info(f"Generating phone number for {context.service_name}...")
        return self.ok(
            {
                "phoneNumber": "+1" + f"{secrets.randbelow(10 ** 10):010d}",
                "verificationCode": f"{secrets.randbelow(10000):04d}",
                "expiresIn": PHONE_EXPIRES_IN,
            },
            f"Generated phone number for {context.service_name}",
        )


class VirtualCardStage(TrialStage):
    """Issues a single-use card. The full number stays inside the pipeline."""

    name = "virtual_card"
    trial_type = TrialType.VIRTUAL_CARD

    def _limit(self, context: TrialContext) -> float:
        raw = context.parameters.get("amount", settings.virtual_card_default_limit)
        try:
            amount = float(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid card amount {raw!r}")
            return settings.virtual_card_default_limit
        return amount if amount > 0 else settings.virtual_card_default_limit

    async def execute(self, context: TrialContext) -> StageResult:
        logger.info(f"Generating virtual card for {context.service_name}...")
        return self.ok(
            {
                "cardNumber": "4" + f"{secrets.randbelow(10 ** 15):015d}",
                "expiryMonth": secrets.randbelow(12) + 1,
                "expiryYear": utcnow().year + 1,
                "cvv": f"{secrets.randbelow(1000):03d}",
                "limit": self._limit(context),
                "currency": "USD",
            },
            f"Generated virtual card for {context.service_name}",
        )


class SignupStage(TrialStage):
    """Completes the sign-up from the earlier stages' outputs."""

    name = "signup"
    trial_type = TrialType.SUBSCRIPTION

    def __init__(self, trial_length_days: Optional[int] = None):
        self.trial_length_days = trial_length_days or settings.trial_length_days

    async def execute(self, context: TrialContext) -> StageResult:
        logger.info(f"Proxying signup for {context.service_name}...")
        profile = context.outputs.get("profile")
        if not profile:
            return self.fail("Failed to sign up for trial: no profile available")

        email = context.outputs.get("email") or {}
        signup_time = utcnow()
        return self.ok(
            {
                "service": context.service_name,
                "signupTime": signup_time.isoformat(),
                "accountDetails": {
                    "username": profile.get("username"),
                    "email": email.get("email", "no-email-provided"),
                    "hasPaymentMethod": "virtual_card" in context.outputs,
                    "membershipLevel": "trial",
                },
                "trialEndDate": (signup_time + timedelta(days=self.trial_length_days)).isoformat(),
            },
            f"Successfully signed up for {context.service_name} trial",
        )


def default_stages(text_service: Optional[TextGenerationService] = None) -> list:
    return [
        ProfileStage(text_service),
        EmailStage(),
        PhoneStage(),
        VirtualCardStage(),
        SignupStage(),
    ]
