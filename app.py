#!/usr/bin/env python3
import os

import aws_cdk as cdk

from uploadpool.common import DEFAULT_IDENTITY_POOL_NAME
from uploadpool.uploadpool_identity import UploadpoolIdentityStack
from uploadpool.uploadpool_storage import UploadpoolStorageStack

app = cdk.App()

env = cdk.Environment(
    account=os.environ.get("CDK_DEFAULT_ACCOUNT"),
    region=os.environ.get("CDK_DEFAULT_REGION"),
)

uss = UploadpoolStorageStack(
    scope=app,
    construct_id="uploadpool-storage-stack",
    env=env,
    description="uploadpool - uploads bucket with cors and public read policy",
)
uis = UploadpoolIdentityStack(
    scope=app,
    construct_id="uploadpool-identity-stack",
    uploads_bucket=uss.uploads_bucket,
    identity_pool_name=os.environ.get(
        "UPLOADPOOL_IDENTITY_POOL_NAME", DEFAULT_IDENTITY_POOL_NAME
    ),
    env=env,
    description="uploadpool - user pool, identity pool and upload roles",
)
uis.add_dependency(uss)

cdk.Tags.of(app).add("Project", "uploadpool")

app.synth()
