# infra_cdk/app.py
import aws_cdk as cdk

from infra_cdk.ci_report_stack import CiReportStack

app = cdk.App()
CiReportStack(app, "CiReportStack")
app.synth()
