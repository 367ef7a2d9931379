import argparse
import json
import logging
import os
import sys
import uuid
from urllib.parse import unquote

import boto3
import requests

from uploadpool.common import (
    SSM_PATH_BUCKET_NAME,
    SSM_PATH_IDENTITY_POOL_ID,
    AcceptanceCheckFailed,
    CheckResult,
    DeployedIdentifiers,
    logger,
)
from uploadpool.policies import (
    AMR_AUTHENTICATED,
    AMR_UNAUTHENTICATED,
    COGNITO_IDENTITY_SERVICE,
    CORS_ALLOWED_HEADERS,
    CORS_ALLOWED_METHODS,
    CORS_ALLOWED_ORIGINS,
    CORS_EXPOSED_HEADERS,
    PUBLIC_READ_ACTIONS,
    PUBLIC_READ_SID,
    UPLOAD_ACTIONS,
)

PROBE_PREFIX = "uploadpool-probe"


def _as_list(value):
    return value if isinstance(value, list) else [value]


def _is_public(principal) -> bool:
    if principal == "*":
        return True
    return isinstance(principal, dict) and "*" in _as_list(principal.get("AWS", []))


def _is_storage_action(action: str) -> bool:
    # IAM action names are case insensitive, "*" covers s3 too
    return action == "*" or action.lower().startswith("s3:")


def _is_cognito_federated(principal) -> bool:
    return (
        isinstance(principal, dict)
        and principal.get("Federated") == COGNITO_IDENTITY_SERVICE
    )


def _role_name(role_arn: str) -> str:
    return role_arn.split("/")[-1]


class AcceptanceChecker:
    """Checks a deployed uploadpool against its intended configuration:
    * CORS rule set of the uploads bucket
    * public read-only bucket policy
    * identity pool role mapping and role trust policies
    * storage permissions of the unauthenticated role
    * optionally, a guest upload round trip through the identity pool
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        self.logger.setLevel(os.environ.get("LOGGING", logging.DEBUG))
        self.s3_client = boto3.client("s3")
        self.iam_client = boto3.client("iam")
        self.identity_client = boto3.client("cognito-identity")
        self.ssm_client = boto3.client("ssm")
        self.deployed = DeployedIdentifiers(
            bucket_name=self._get_parameter(SSM_PATH_BUCKET_NAME),
            identity_pool_id=self._get_parameter(SSM_PATH_IDENTITY_POOL_ID),
        )

    def _get_parameter(self, name):
        return self.ssm_client.get_parameter(Name=name)["Parameter"]["Value"]

    @property
    def bucket_arn(self):
        return f"arn:aws:s3:::{self.deployed.bucket_name}"

    def _check_cors(self):
        rules = self.s3_client.get_bucket_cors(Bucket=self.deployed.bucket_name)[
            "CORSRules"
        ]
        expected = {
            "AllowedHeaders": set(CORS_ALLOWED_HEADERS),
            "AllowedMethods": set(CORS_ALLOWED_METHODS),
            "AllowedOrigins": set(CORS_ALLOWED_ORIGINS),
            "ExposeHeaders": set(CORS_EXPOSED_HEADERS),
        }
        for rule in rules:
            if all(set(rule.get(key, [])) == value for key, value in expected.items()):
                return f"CORS rule found among {len(rules)} rule(s)"
        raise AcceptanceCheckFailed(f"No CORS rule matches {expected}, got {rules}")

    def _check_public_read(self):
        policy = json.loads(
            self.s3_client.get_bucket_policy(Bucket=self.deployed.bucket_name)[
                "Policy"
            ]
        )
        public_statements = [
            statement
            for statement in policy["Statement"]
            if statement["Effect"] == "Allow"
            and _is_public(statement.get("Principal"))
        ]
        for statement in public_statements:
            extra_actions = set(_as_list(statement["Action"])) - set(
                PUBLIC_READ_ACTIONS
            )
            if extra_actions:
                raise AcceptanceCheckFailed(
                    f"Public statement '{statement.get('Sid')}' grants {sorted(extra_actions)}"
                )
        read_statements = [
            statement
            for statement in public_statements
            if statement.get("Sid") == PUBLIC_READ_SID
        ]
        if not read_statements:
            raise AcceptanceCheckFailed(
                f"Bucket policy has no public '{PUBLIC_READ_SID}' statement"
            )
        resources = _as_list(read_statements[0]["Resource"])
        if resources != [f"{self.bucket_arn}/*"]:
            raise AcceptanceCheckFailed(f"Public read covers {resources}")
        return "Objects are publicly readable, nothing else is public"

    def _get_identity_pool_roles(self):
        return self.identity_client.get_identity_pool_roles(
            IdentityPoolId=self.deployed.identity_pool_id
        )

    def _check_role_mapping(self):
        pool = self.identity_client.describe_identity_pool(
            IdentityPoolId=self.deployed.identity_pool_id
        )
        if not pool["AllowUnauthenticatedIdentities"]:
            raise AcceptanceCheckFailed("Identity pool refuses unauthenticated identities")
        pool_roles = self._get_identity_pool_roles()
        roles = pool_roles["Roles"]
        if set(roles) != {AMR_AUTHENTICATED, AMR_UNAUTHENTICATED}:
            raise AcceptanceCheckFailed(f"Unexpected role keys {sorted(roles)}")
        if roles[AMR_AUTHENTICATED] == roles[AMR_UNAUTHENTICATED]:
            raise AcceptanceCheckFailed("Both identity types map to the same role")
        providers = pool.get("CognitoIdentityProviders", [])
        if len(providers) != 1:
            raise AcceptanceCheckFailed(f"Expected one identity provider, got {providers}")
        identity_provider = f"{providers[0]['ProviderName']}:{providers[0]['ClientId']}"
        mapping = pool_roles.get("RoleMappings", {}).get(identity_provider)
        if mapping is None:
            raise AcceptanceCheckFailed(f"No role mapping for '{identity_provider}'")
        if (mapping["Type"], mapping.get("AmbiguousRoleResolution")) != (
            "Token",
            "AuthenticatedRole",
        ):
            raise AcceptanceCheckFailed(f"Unexpected role mapping {mapping}")
        return f"Role mapping for '{identity_provider}' is token based"

    def _check_trust_policies(self):
        roles = self._get_identity_pool_roles()["Roles"]
        for amr, role_arn in roles.items():
            document = self._decode(
                self.iam_client.get_role(RoleName=_role_name(role_arn))["Role"][
                    "AssumeRolePolicyDocument"
                ]
            )
            allowed = [
                statement
                for statement in document["Statement"]
                if statement["Effect"] == "Allow"
            ]
            trusted = [
                statement
                for statement in allowed
                if _is_cognito_federated(statement.get("Principal"))
            ]
            if len(trusted) != len(allowed):
                raise AcceptanceCheckFailed(
                    f"Role for '{amr}' trusts principals other than Cognito"
                )
            if len(trusted) != 1:
                raise AcceptanceCheckFailed(f"Role for '{amr}' is not trusted by Cognito")
            conditions = trusted[0].get("Condition", {})
            audience = conditions.get("StringEquals", {}).get(
                f"{COGNITO_IDENTITY_SERVICE}:aud"
            )
            amr_values = _as_list(
                conditions.get("ForAnyValue:StringLike", {}).get(
                    f"{COGNITO_IDENTITY_SERVICE}:amr", []
                )
            )
            if audience != self.deployed.identity_pool_id or amr_values != [amr]:
                raise AcceptanceCheckFailed(
                    f"Role for '{amr}' trusts aud={audience} amr={amr_values}"
                )
        return "Both roles are scoped to the identity pool"

    def _role_statements(self, role_name):
        statements = []
        for policy_name in self.iam_client.list_role_policies(RoleName=role_name)[
            "PolicyNames"
        ]:
            document = self._decode(
                self.iam_client.get_role_policy(
                    RoleName=role_name, PolicyName=policy_name
                )["PolicyDocument"]
            )
            statements.extend(_as_list(document["Statement"]))
        for attached in self.iam_client.list_attached_role_policies(RoleName=role_name)[
            "AttachedPolicies"
        ]:
            policy_arn = attached["PolicyArn"]
            version_id = self.iam_client.get_policy(PolicyArn=policy_arn)["Policy"][
                "DefaultVersionId"
            ]
            document = self._decode(
                self.iam_client.get_policy_version(
                    PolicyArn=policy_arn, VersionId=version_id
                )["PolicyVersion"]["Document"]
            )
            statements.extend(_as_list(document["Statement"]))
        return statements

    def _check_unauthenticated_permissions(self):
        role_name = _role_name(self._get_identity_pool_roles()["Roles"][AMR_UNAUTHENTICATED])
        storage_actions = set()
        for statement in self._role_statements(role_name):
            if statement["Effect"] != "Allow":
                continue
            if "NotAction" in statement:
                raise AcceptanceCheckFailed(
                    f"Role '{role_name}' allows everything except {statement['NotAction']}"
                )
            actions = {
                action
                for action in _as_list(statement["Action"])
                if _is_storage_action(action)
            }
            if not actions:
                continue
            resources = set(_as_list(statement["Resource"]))
            if not resources <= {self.bucket_arn, f"{self.bucket_arn}/*"}:
                raise AcceptanceCheckFailed(
                    f"Storage actions reach beyond the uploads bucket: {sorted(resources)}"
                )
            storage_actions |= {action.lower() for action in actions}
        if storage_actions != {action.lower() for action in UPLOAD_ACTIONS}:
            raise AcceptanceCheckFailed(
                f"Unauthenticated storage actions are {sorted(storage_actions)}"
            )
        return f"Role '{role_name}' holds {len(storage_actions)} storage actions"

    def _decode(self, document):
        # IAM hands back url-encoded JSON unless botocore already parsed it
        if isinstance(document, str):
            return json.loads(unquote(document))
        return document

    def _public_url(self, key):
        region = self.s3_client.meta.region_name
        return f"https://{self.deployed.bucket_name}.s3.{region}.amazonaws.com/{key}"

    def _probe_upload(self):
        identity_id = self.identity_client.get_id(
            IdentityPoolId=self.deployed.identity_pool_id
        )["IdentityId"]
        credentials = self.identity_client.get_credentials_for_identity(
            IdentityId=identity_id
        )["Credentials"]
        guest_s3_client = boto3.client(
            "s3",
            region_name=self.s3_client.meta.region_name,
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretKey"],
            aws_session_token=credentials["SessionToken"],
        )
        key = f"{PROBE_PREFIX}/{uuid.uuid4()}.txt"
        body = f"uploaded by {identity_id}".encode()
        self.logger.debug(f"Uploading '{key}' as guest identity '{identity_id}'")
        guest_s3_client.put_object(
            Bucket=self.deployed.bucket_name,
            Key=key,
            Body=body,
            ContentType="text/plain",
        )
        try:
            response = requests.get(self._public_url(key), timeout=10)
            self.logger.debug(f"Public read, response status: {response.status_code}")
            response.raise_for_status()
            if response.content != body:
                raise AcceptanceCheckFailed(f"Public read of '{key}' returned other content")
        finally:
            guest_s3_client.delete_object(Bucket=self.deployed.bucket_name, Key=key)
        return f"Guest upload of '{key}' was publicly readable"

    def run(self, probe_upload=False):
        checks = [
            ("cors", self._check_cors),
            ("public-read", self._check_public_read),
            ("role-mapping", self._check_role_mapping),
            ("trust-policies", self._check_trust_policies),
            ("unauthenticated-permissions", self._check_unauthenticated_permissions),
        ]
        if probe_upload:
            checks.append(("guest-upload", self._probe_upload))
        results = []
        for name, check in checks:
            try:
                results.append(CheckResult(name=name, passed=True, detail=check()))
            except AcceptanceCheckFailed as e:
                self.logger.warning(f"Check '{name}' failed: {e}")
                results.append(CheckResult(name=name, passed=False, detail=str(e)))
            except Exception as e:
                self.logger.exception(e)
                results.append(
                    CheckResult(name=name, passed=False, detail=f"error: {e}")
                )
        return results


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Verify a deployed uploadpool against its intended configuration."
    )
    parser.add_argument(
        "--probe-upload",
        action="store_true",
        help="also upload and read back an object using guest credentials",
    )
    args = parser.parse_args(argv)

    results = AcceptanceChecker().run(probe_upload=args.probe_upload)
    for result in results:
        logger.info(
            f"{'PASS' if result.passed else 'FAIL'} {result.name}: {result.detail}"
        )
    return 0 if all(result.passed for result in results) else 1


if __name__ == "__main__":
    sys.exit(main())
