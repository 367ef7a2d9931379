from aws_cdk import aws_iam as _iam
from constructs import Construct
from typing import List

from uploadpool.policies import identity_pool_principal


class CognitoRole(Construct):
    """IAM role assumable by identities of one identity pool, with an inline policy.

    ``amr`` selects which identities may assume it (``authenticated`` or
    ``unauthenticated``).
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        identity_pool_id: str,
        amr: str,
        statements: List[_iam.PolicyStatement],
    ) -> None:
        super().__init__(scope, construct_id)

        self.role = _iam.Role(
            self,
            "Role",
            assumed_by=identity_pool_principal(identity_pool_id, amr),
            description=f"Assumed by {amr} identities of the uploadpool identity pool",
        )
        self.policy = _iam.Policy(
            self,
            "RolePolicy",
            statements=statements,
            roles=[self.role],
        )
