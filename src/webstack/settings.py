from __future__ import annotations

import os
import re
from dataclasses import dataclass

# unresolved pseudo parameters; the deployment step substitutes real values
ACCOUNT_PLACEHOLDER = "${Token[AWS.AccountId]}"
REGION_PLACEHOLDER = "${Token[AWS.Region]}"

_ACCOUNT_RE = re.compile(r"^\d{12}$")
_REGION_RE = re.compile(r"^[a-z]{2}(-gov)?-[a-z]+-\d$")


@dataclass(frozen=True)
class DeploymentEnv:
    """Account and region the graph is synthesized for."""

    account: str = ACCOUNT_PLACEHOLDER
    region: str = REGION_PLACEHOLDER
    partition: str = "aws"

    @classmethod
    def from_env(cls) -> "DeploymentEnv":
        return cls(
            account=os.getenv("CDK_DEFAULT_ACCOUNT", "").strip() or ACCOUNT_PLACEHOLDER,
            region=(
                os.getenv("CDK_DEFAULT_REGION", "").strip()
                or os.getenv("AWS_REGION", "").strip()
                or REGION_PLACEHOLDER
            ),
        ).normalized()

    @property
    def is_resolved(self) -> bool:
        return self.account != ACCOUNT_PLACEHOLDER and self.region != REGION_PLACEHOLDER

    def normalized(self) -> "DeploymentEnv":
        """Validate concrete values. Raises ValueError on malformed account or region."""
        account = self.account.strip()
        region = self.region.strip().lower() if self.region != REGION_PLACEHOLDER else self.region

        if account != ACCOUNT_PLACEHOLDER and not _ACCOUNT_RE.match(account):
            raise ValueError(f"CDK_DEFAULT_ACCOUNT must be a 12-digit account id, got: {account!r}")
        if region != REGION_PLACEHOLDER and not _REGION_RE.match(region):
            raise ValueError(f"CDK_DEFAULT_REGION is not a valid region name, got: {region!r}")
        if not self.partition.strip():
            raise ValueError("partition must be non-empty")

        return DeploymentEnv(account=account, region=region, partition=self.partition.strip())

    def arn(self, service: str, resource: str, *, region: str | None = None, account: str | None = None) -> str:
        r = self.region if region is None else region
        a = self.account if account is None else account
        return f"arn:{self.partition}:{service}:{r}:{a}:{resource}"
