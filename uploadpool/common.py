from collections import namedtuple
import logging
import os

logging.basicConfig(format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger("uploadpool")
logger.setLevel(os.environ.get("LOGGING", logging.DEBUG))


SSM_PATH_BUCKET_NAME = "/uploadpool/aws/uploads_bucket_name"
SSM_PATH_IDENTITY_POOL_ID = "/uploadpool/aws/identity_pool_id"
SSM_PATH_USER_POOL_ID = "/uploadpool/aws/user_pool_id"
SSM_PATH_USER_POOL_CLIENT_ID = "/uploadpool/aws/user_pool_client_id"

DEFAULT_IDENTITY_POOL_NAME = "uploadpool_identity_pool"


CheckResult = namedtuple("CheckResult", ["name", "passed", "detail"])
DeployedIdentifiers = namedtuple(
    "DeployedIdentifiers", ["bucket_name", "identity_pool_id"]
)


class AcceptanceCheckFailed(Exception):
    pass
