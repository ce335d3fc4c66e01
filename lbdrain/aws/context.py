"""AWS context: session, identity, and region resolution.

Wraps boto3 session creation and STS ``get-caller-identity`` into a single
:class:`AWSContext` that the workflows build clients from.

Region resolution precedence:
1. Explicit ``--region`` CLI flag / config value
2. ``AWS_DEFAULT_REGION`` / ``AWS_REGION`` env vars
3. Hardcoded fallback (``us-east-1``)

Profile resolution is optional: on an EC2 instance the instance role is
normally used, so a missing profile means "default credential chain".
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from lbdrain.errors import QueryError

logger = logging.getLogger(__name__)

_DEFAULT_REGION = "us-east-1"


def resolve_region(region: Optional[str] = None) -> str:
    """Return the AWS region string.

    Precedence: *region* → ``AWS_DEFAULT_REGION`` → ``AWS_REGION`` → fallback.
    """
    if region:
        return region
    return (
        os.environ.get("AWS_DEFAULT_REGION")
        or os.environ.get("AWS_REGION")
        or _DEFAULT_REGION
    )


def resolve_profile(profile: Optional[str] = None) -> Optional[str]:
    """Return the AWS profile name, or ``None`` for the default chain."""
    return profile or os.environ.get("AWS_PROFILE") or None


# ---------------------------------------------------------------------------
# AWSContext
# ---------------------------------------------------------------------------


@dataclass
class AWSContext:
    """Bag of AWS identity + session factory.

    Attributes:
        region: AWS region (e.g. ``eu-central-1``).
        profile: Profile name, or ``None`` for the default credential chain.
        account_id: 12-digit AWS account ID (empty until :meth:`build`).
        caller_arn: Full ARN from ``sts:GetCallerIdentity``.
    """

    region: str
    profile: Optional[str] = None
    account_id: str = ""
    caller_arn: str = ""
    _session: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def build(
        cls,
        region: Optional[str] = None,
        profile: Optional[str] = None,
    ) -> "AWSContext":
        """Construct an :class:`AWSContext` and verify credentials via STS.

        Raises :class:`QueryError` on credential / network failures.
        """
        resolved_region = resolve_region(region)
        resolved_profile = resolve_profile(profile)

        session = boto3.Session(
            profile_name=resolved_profile, region_name=resolved_region
        )

        try:
            identity = session.client("sts").get_caller_identity()
        except (BotoCoreError, ClientError) as exc:
            raise QueryError(
                "AWS credentials invalid or inaccessible in region "
                f"{resolved_region}: {exc}"
            ) from exc

        ctx = cls(
            region=resolved_region,
            profile=resolved_profile,
            account_id=identity["Account"],
            caller_arn=identity["Arn"],
            _session=session,
        )
        logger.info(
            "AWS context: account=%s arn=%s region=%s",
            ctx.account_id,
            ctx.caller_arn,
            ctx.region,
        )
        return ctx

    @property
    def session(self) -> boto3.Session:
        """Return the cached :class:`boto3.Session`."""
        if self._session is None:
            self._session = boto3.Session(
                profile_name=self.profile, region_name=self.region
            )
        return self._session

    def client(self, service: str, **kwargs: Any) -> Any:
        """Create a boto3 client for *service*."""
        return self.session.client(service, **kwargs)
