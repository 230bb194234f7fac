# infra_cdk/ci_report_stack.py
from aws_cdk import (
    Stack,
    Duration,
    CfnParameter,
    RemovalPolicy,
    aws_lambda as _lambda,
    aws_lambda_event_sources as lambda_event_sources,
    aws_s3 as s3,
    aws_s3_notifications as s3_nots,
    aws_sns as sns,
    aws_iam as iam,
    CfnOutput
)
from constructs import Construct

ARTIFACT_PREFIXES = ("test-results/", "sonarqube/")


class CiReportStack(Stack):

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # === Parameters for Deployment ===
        sender_email_param = CfnParameter(self, "VerifiedSenderEmail", type="String",
            description="The email address verified with SES to send reports from.")

        recipient_email_param = CfnParameter(self, "RecipientEmails", type="String",
            description="A comma-separated list of email addresses that will receive reports.")

        subject_prefix_param = CfnParameter(self, "EmailSubjectPrefix", type="String", default="",
            description="Optional text put in front of every report subject, e.g. [CI].")

        model_id_param = CfnParameter(self, "BedrockModelId", type="String",
            default="amazon.titan-text-express-v1",
            description="Bedrock text model used to write the report.")

        # === Artifact storage and notifications ===
        artifact_bucket = s3.Bucket(self, "CiArtifactBucket",
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED,
            removal_policy=RemovalPolicy.DESTROY,
            auto_delete_objects=True,
        )

        artifacts_topic = sns.Topic(self, "CiArtifactsTopic")
        for prefix in ARTIFACT_PREFIXES:
            artifact_bucket.add_event_notification(
                s3.EventType.OBJECT_CREATED,
                s3_nots.SnsDestination(artifacts_topic),
                s3.NotificationKeyFilter(prefix=prefix),
            )

        # === Report Dispatcher ===
        ci_report_function = _lambda.Function(self, "CiReportFunction",
            runtime=_lambda.Runtime.PYTHON_3_12,
            code=_lambda.Code.from_asset("lambdas", exclude=["**/__pycache__"]),
            handler="ci_report.app.handler",
            timeout=Duration.minutes(5),
            memory_size=512,
            environment={
                "ARTIFACT_BUCKET": artifact_bucket.bucket_name,
                "RECIPIENT_EMAILS": recipient_email_param.value_as_string,
                "SENDER_EMAIL": sender_email_param.value_as_string,
                "EMAIL_SUBJECT_PREFIX": subject_prefix_param.value_as_string,
                "BEDROCK_MODEL_ID": model_id_param.value_as_string,
                "BEDROCK_REGION": self.region,
                "SES_REGION": self.region,
            },
        )
        artifact_bucket.grant_read(ci_report_function)
        ci_report_function.add_to_role_policy(iam.PolicyStatement(actions=["bedrock:InvokeModel"], resources=["*"]))
        ci_report_function.add_to_role_policy(iam.PolicyStatement(actions=["ses:SendEmail", "ses:SendRawEmail"], resources=["*"]))
        ci_report_function.add_event_source(lambda_event_sources.SnsEventSource(artifacts_topic))

        # === Outputs ===
        CfnOutput(self, "ArtifactBucketName", value=artifact_bucket.bucket_name,
            description="Upload CI artifacts under test-results/<run>/ or sonarqube/<run>/.")
        CfnOutput(self, "ArtifactsTopicArn", value=artifacts_topic.topic_arn)
