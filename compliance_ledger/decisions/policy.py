"""
Policy engine contract.

Rule evaluation lives in an external policy engine. The ledger only consumes
its configuration version and the evaluation result it produces.
"""

from typing import Protocol

from compliance_ledger.decisions.schemas import (
    PolicyConfiguration,
    PolicyEvaluationContext,
    PolicyEvaluationResult,
)


class PolicyEngine(Protocol):
    async def get_policy_configuration(self) -> PolicyConfiguration: ...

    async def evaluate(self, context: PolicyEvaluationContext) -> PolicyEvaluationResult: ...
