from aws_cdk import (
    CfnOutput,
    RemovalPolicy,
    Stack,
    aws_cognito as _cognito,
    aws_s3 as _s3,
    aws_ssm as _ssm,
)
from constructs import Construct

from uploadpool.common import (
    DEFAULT_IDENTITY_POOL_NAME,
    SSM_PATH_IDENTITY_POOL_ID,
    SSM_PATH_USER_POOL_CLIENT_ID,
    SSM_PATH_USER_POOL_ID,
)
from uploadpool.patterns.cognito_role import CognitoRole
from uploadpool.policies import (
    AMR_AUTHENTICATED,
    AMR_UNAUTHENTICATED,
    cognito_statement,
    upload_statement,
)


class UploadpoolIdentityStack(Stack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        uploads_bucket: _s3.IBucket,
        identity_pool_name: str = DEFAULT_IDENTITY_POOL_NAME,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        #
        # user pool
        #
        self.user_pool = _cognito.UserPool(
            self,
            "UserPool",
            removal_policy=RemovalPolicy.DESTROY,
        )
        self.user_pool_client = _cognito.UserPoolClient(
            self,
            "Client",
            user_pool=self.user_pool,
        )

        #
        # identity pool
        #
        self.identity_pool = _cognito.CfnIdentityPool(
            self,
            "IdentityPool",
            identity_pool_name=identity_pool_name,
            allow_unauthenticated_identities=True,
            cognito_identity_providers=[
                _cognito.CfnIdentityPool.CognitoIdentityProviderProperty(
                    client_id=self.user_pool_client.user_pool_client_id,
                    provider_name=self.user_pool.user_pool_provider_name,
                )
            ],
        )
        identity_pool_id = self.identity_pool.ref

        #
        # roles
        #
        self.authenticated_role = CognitoRole(
            self,
            "AuthenticatedRole",
            identity_pool_id=identity_pool_id,
            amr=AMR_AUTHENTICATED,
            statements=[cognito_statement()],
        )
        self.unauthenticated_role = CognitoRole(
            self,
            "UnauthenticatedRole",
            identity_pool_id=identity_pool_id,
            amr=AMR_UNAUTHENTICATED,
            statements=[cognito_statement(), upload_statement(uploads_bucket)],
        )

        #
        # role attachment
        #
        identity_provider = (
            f"{self.user_pool.user_pool_provider_name}"
            f":{self.user_pool_client.user_pool_client_id}"
        )
        _cognito.CfnIdentityPoolRoleAttachment(
            self,
            "IdentityPoolRoleAttachment",
            identity_pool_id=identity_pool_id,
            roles={
                AMR_AUTHENTICATED: self.authenticated_role.role.role_arn,
                AMR_UNAUTHENTICATED: self.unauthenticated_role.role.role_arn,
            },
            role_mappings={
                "userpool": _cognito.CfnIdentityPoolRoleAttachment.RoleMappingProperty(
                    type="Token",
                    ambiguous_role_resolution="AuthenticatedRole",
                    identity_provider=identity_provider,
                )
            },
        )

        #
        # outputs
        #
        CfnOutput(
            self,
            "IdentityPoolId",
            value=identity_pool_id,
            description="Id of the identity pool handing out upload credentials",
        )
        _ssm.StringParameter(
            self,
            "IdentityPoolIdSsm",
            parameter_name=SSM_PATH_IDENTITY_POOL_ID,
            string_value=identity_pool_id,
        )
        CfnOutput(self, "UserPoolId", value=self.user_pool.user_pool_id)
        _ssm.StringParameter(
            self,
            "UserPoolIdSsm",
            parameter_name=SSM_PATH_USER_POOL_ID,
            string_value=self.user_pool.user_pool_id,
        )
        CfnOutput(
            self, "UserPoolClientId", value=self.user_pool_client.user_pool_client_id
        )
        _ssm.StringParameter(
            self,
            "UserPoolClientIdSsm",
            parameter_name=SSM_PATH_USER_POOL_CLIENT_ID,
            string_value=self.user_pool_client.user_pool_client_id,
        )
