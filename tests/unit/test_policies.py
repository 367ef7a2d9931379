from uploadpool.policies import (
    CORS_ALLOWED_METHODS,
    cognito_statement,
    cors_rule,
    identity_pool_principal,
)


def test_cors_rule_covers_every_upload_method():
    rule = cors_rule()

    assert [method.value for method in rule.allowed_methods] == CORS_ALLOWED_METHODS
    assert rule.exposed_headers == ["ETag"]


def test_cognito_statement_renders_to_wildcard_resource():
    assert cognito_statement().to_statement_json() == {
        "Action": [
            "mobileanalytics:PutEvents",
            "cognito-sync:*",
            "cognito-identity:*",
        ],
        "Effect": "Allow",
        "Resource": "*",
    }


def test_identity_pool_principal_scoped_to_pool_and_amr():
    principal = identity_pool_principal("ap-southeast-2:1234", "unauthenticated")

    assert principal.federated == "cognito-identity.amazonaws.com"
    assert principal.assume_role_action == "sts:AssumeRoleWithWebIdentity"
    assert principal.conditions == {
        "StringEquals": {"cognito-identity.amazonaws.com:aud": "ap-southeast-2:1234"},
        "ForAnyValue:StringLike": {
            "cognito-identity.amazonaws.com:amr": "unauthenticated"
        },
    }
