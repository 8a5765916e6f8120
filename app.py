#!/usr/bin/env python3
import os

import aws_cdk as cdk
from csp_report.csp_report_stack import CspReportStack

app = cdk.App()


def context(key, default=None):
    value = app.node.try_get_context(key)
    # `-c domain_name=` on the command line clears a cdk.json default
    return value if value not in (None, "") else default


CspReportStack(
    app,
    context("stack_name", "CspReportStack"),
    base_path=context("base_path", "csp-report"),
    rest_api_name=context("rest_api_name", "csp-api"),
    lambda_name=context("lambda_name", "csp-lambda"),
    domain_name=context("domain_name"),
    certificate_arn=context("certificate_arn"),
    hosted_zone_id=context("hosted_zone_id"),
    hosted_zone_name=context("hosted_zone_name"),
    log_level=context("log_level", "INFO"),
    env=cdk.Environment(
        account=os.getenv("CDK_DEFAULT_ACCOUNT"),
        # The regional certificate lives in us-east-1
        region=os.getenv("CDK_DEFAULT_REGION", "us-east-1"),
    ),
)
app.synth()
