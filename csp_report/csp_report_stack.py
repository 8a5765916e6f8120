"""CSP Report CDK Stack.

Creates a regional REST API whose root POST method proxies to a Lambda
function that logs Content Security Policy reports to CloudWatch, plus the
log group, an execution role and, when configured, a custom domain with a
Route 53 alias record.
"""

import os

from aws_cdk import (
    CfnOutput,
    Duration,
    RemovalPolicy,
    Stack,
    Tags,
    aws_apigateway as apigw,
    aws_certificatemanager as acm,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_logs as logs,
    aws_route53 as route53,
    aws_route53_targets as targets,
)
from constructs import Construct

LAMBDA_ASSET_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "lambda", "report"
)


class CspReportStack(Stack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        base_path: str = "csp-report",
        rest_api_name: str = "csp-api",
        lambda_name: str = "csp-lambda",
        domain_name: str | None = None,
        certificate_arn: str | None = None,
        hosted_zone_id: str | None = None,
        hosted_zone_name: str | None = None,
        log_level: str = "INFO",
        log_retention: logs.RetentionDays = logs.RetentionDays.THREE_MONTHS,
        **kwargs,
    ) -> None:
        if domain_name and not certificate_arn:
            raise ValueError("certificate_arn is required when domain_name is set")
        if hosted_zone_id and not domain_name:
            raise ValueError("domain_name is required when hosted_zone_id is set")

        super().__init__(scope, construct_id, **kwargs)

        Tags.of(self).add("Project", "csp-report")

        # ---------------------------------------------------------------
        # Log group
        # ---------------------------------------------------------------
        log_group = logs.LogGroup(
            self,
            "ReportLogGroup",
            log_group_name=f"/aws/lambda/{lambda_name}",
            retention=log_retention,
            removal_policy=RemovalPolicy.DESTROY,
        )

        # ---------------------------------------------------------------
        # Report Lambda
        # ---------------------------------------------------------------
        # The function may only write to its own log group.
        lambda_role = iam.Role(
            self,
            "ReportFunctionRole",
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            inline_policies={
                "csp-lambda-logs": iam.PolicyDocument(
                    statements=[
                        iam.PolicyStatement(
                            actions=[
                                "logs:CreateLogGroup",
                                "logs:CreateLogStream",
                                "logs:PutLogEvents",
                            ],
                            resources=[log_group.log_group_arn],
                        )
                    ]
                )
            },
        )

        report_fn = lambda_.Function(
            self,
            "ReportFunction",
            function_name=lambda_name,
            description="Logs CSP violation reports to CloudWatch",
            runtime=lambda_.Runtime.PYTHON_3_12,
            handler="index.handler",
            code=lambda_.Code.from_asset(LAMBDA_ASSET_DIR),
            role=lambda_role,
            environment={
                "LOG_LEVEL": log_level,
            },
            timeout=Duration.seconds(10),
            memory_size=128,
        )

        # The log group must exist before the first invocation creates it
        report_fn.node.add_dependency(log_group)

        # ---------------------------------------------------------------
        # REST API
        # ---------------------------------------------------------------
        rest_api = apigw.RestApi(
            self,
            "ReportApi",
            rest_api_name=rest_api_name,
            description="CSP report API",
            endpoint_types=[apigw.EndpointType.REGIONAL],
            deploy_options=apigw.StageOptions(stage_name=base_path),
        )

        # Browsers send reports unauthenticated
        rest_api.root.add_method(
            "POST",
            apigw.LambdaIntegration(report_fn),
            authorization_type=apigw.AuthorizationType.NONE,
        )

        invoke_url = rest_api.url

        # ---------------------------------------------------------------
        # Custom domain + DNS (optional)
        # ---------------------------------------------------------------
        if domain_name:
            domain = apigw.DomainName(
                self,
                "ReportDomain",
                domain_name=domain_name,
                certificate=acm.Certificate.from_certificate_arn(
                    self, "ReportCertificate", certificate_arn
                ),
                endpoint_type=apigw.EndpointType.REGIONAL,
                security_policy=apigw.SecurityPolicy.TLS_1_2,
            )
            domain.add_base_path_mapping(
                rest_api,
                base_path=base_path,
                stage=rest_api.deployment_stage,
            )
            invoke_url = f"https://{domain_name}/{base_path}"

            if hosted_zone_id:
                zone = route53.HostedZone.from_hosted_zone_attributes(
                    self,
                    "ReportZone",
                    hosted_zone_id=hosted_zone_id,
                    zone_name=hosted_zone_name or parent_zone_name(domain_name),
                )
                route53.ARecord(
                    self,
                    "ReportAliasRecord",
                    zone=zone,
                    record_name=domain_name,
                    target=route53.RecordTarget.from_alias(
                        targets.ApiGatewayDomain(domain)
                    ),
                )

        # ---------------------------------------------------------------
        # Outputs
        # ---------------------------------------------------------------
        CfnOutput(self, "ApiInvokeUrl", value=invoke_url)
        CfnOutput(self, "LambdaArn", value=report_fn.function_arn)


def parent_zone_name(domain_name: str) -> str:
    """Strip the leftmost label: api.example.org -> example.org.

    A two-label name is taken to be the zone apex itself.
    """
    labels = domain_name.rstrip(".").split(".")
    if len(labels) <= 2:
        return ".".join(labels)
    return ".".join(labels[1:])
