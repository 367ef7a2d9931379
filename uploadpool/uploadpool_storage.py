from aws_cdk import (
    CfnOutput,
    RemovalPolicy,
    Stack,
    aws_s3 as _s3,
    aws_ssm as _ssm,
)
from constructs import Construct

from uploadpool.common import SSM_PATH_BUCKET_NAME
from uploadpool.policies import cors_rule, public_read_statement


class UploadpoolStorageStack(Stack):
    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        #
        # uploads bucket
        #
        bucket = _s3.Bucket(
            self,
            "UploadsBucket",
            cors=[cors_rule()],
            block_public_access=_s3.BlockPublicAccess(
                block_public_acls=False,
                block_public_policy=False,
                ignore_public_acls=False,
                restrict_public_buckets=False,
            ),
            object_ownership=_s3.ObjectOwnership.OBJECT_WRITER,
            removal_policy=RemovalPolicy.DESTROY,
        )
        bucket.add_to_resource_policy(public_read_statement(bucket))
        self.uploads_bucket = bucket

        #
        # outputs
        #
        CfnOutput(
            self,
            "BucketName",
            value=self.uploads_bucket.bucket_name,
            description="Name of the uploads bucket",
        )
        _ssm.StringParameter(
            self,
            "BucketNameSsm",
            parameter_name=SSM_PATH_BUCKET_NAME,
            string_value=self.uploads_bucket.bucket_name,
        )
