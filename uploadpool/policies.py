from aws_cdk import aws_iam as _iam, aws_s3 as _s3

COGNITO_IDENTITY_SERVICE = "cognito-identity.amazonaws.com"
AMR_AUTHENTICATED = "authenticated"
AMR_UNAUTHENTICATED = "unauthenticated"

CORS_ALLOWED_HEADERS = ["*"]
CORS_ALLOWED_METHODS = ["HEAD", "GET", "PUT", "POST", "DELETE"]
CORS_ALLOWED_ORIGINS = ["*"]
CORS_EXPOSED_HEADERS = ["ETag"]

PUBLIC_READ_SID = "PublicReadGetObject"
PUBLIC_READ_ACTIONS = ["s3:GetObject"]

COGNITO_ACTIONS = [
    "mobileanalytics:PutEvents",
    "cognito-sync:*",
    "cognito-identity:*",
]
UPLOAD_ACTIONS = [
    "s3:DeleteObject",
    "s3:GetObject",
    "s3:ListBucket",
    "s3:PutObject",
    "s3:PutObjectAcl",
]


def cors_rule() -> _s3.CorsRule:
    return _s3.CorsRule(
        allowed_headers=CORS_ALLOWED_HEADERS,
        allowed_methods=[_s3.HttpMethods[method] for method in CORS_ALLOWED_METHODS],
        allowed_origins=CORS_ALLOWED_ORIGINS,
        exposed_headers=CORS_EXPOSED_HEADERS,
    )


def public_read_statement(bucket: _s3.IBucket) -> _iam.PolicyStatement:
    return _iam.PolicyStatement(
        sid=PUBLIC_READ_SID,
        effect=_iam.Effect.ALLOW,
        principals=[_iam.StarPrincipal()],
        actions=PUBLIC_READ_ACTIONS,
        resources=[bucket.arn_for_objects("*")],
    )


def cognito_statement() -> _iam.PolicyStatement:
    return _iam.PolicyStatement(
        effect=_iam.Effect.ALLOW,
        actions=COGNITO_ACTIONS,
        resources=["*"],
    )


def upload_statement(bucket: _s3.IBucket) -> _iam.PolicyStatement:
    return _iam.PolicyStatement(
        effect=_iam.Effect.ALLOW,
        actions=UPLOAD_ACTIONS,
        resources=[bucket.bucket_arn, bucket.arn_for_objects("*")],
    )


def identity_pool_principal(identity_pool_id: str, amr: str) -> _iam.FederatedPrincipal:
    """Web identity principal that only federates identities of the given pool and amr."""
    return _iam.FederatedPrincipal(
        COGNITO_IDENTITY_SERVICE,
        conditions={
            "StringEquals": {f"{COGNITO_IDENTITY_SERVICE}:aud": identity_pool_id},
            "ForAnyValue:StringLike": {f"{COGNITO_IDENTITY_SERVICE}:amr": amr},
        },
        assume_role_action="sts:AssumeRoleWithWebIdentity",
    )
